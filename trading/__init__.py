"""Trading app: stock and balance ledgers, order confirmation and returns.

The engines (``ConfirmationEngine``, ``ReturnEngine`` ...) hold the business
rules; views and serializers only translate HTTP to engine calls.
"""
