"""Command executors"""
