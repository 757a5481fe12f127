"""TV Remote core: configuration"""
