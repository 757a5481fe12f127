"""Services: credential cache, pairing sessions, secure channel and discovery"""
