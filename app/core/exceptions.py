from typing import Optional

class TokenPurchaseError(Exception):
    """Base error for token purchase operations. Carries the HTTP status it maps to."""
    status_code: int = 500

    def __init__(self, detail: str, status_code: Optional[int] = None):
        super().__init__(detail)
        self.detail = detail
        if status_code is not None:
            self.status_code = status_code

class TokenPurchaseNotFound(TokenPurchaseError):
    status_code = 404

    def __init__(self, purchase_id: str):
        super().__init__(f"Token purchase with ID {purchase_id} not found")
        self.purchase_id = purchase_id
