from .scanner import ReceiptScanner

__all__ = ["ReceiptScanner"]
