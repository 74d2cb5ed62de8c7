from inbox.models.inquiry import Inquiry

__all__ = ["Inquiry"]
