"""Multi-store product search and cheapest-price matching"""
