"""
EVM mechanisms
"""
