"""
Client and facilitator signers
"""
