from .utils import load_notifications_from_jsonl

__all__ = ["load_notifications_from_jsonl"]
