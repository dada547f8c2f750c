"""Background worker package"""
