"""HTTP routes that sit outside a single domain"""
