from __future__ import annotations

MISSING_CONTENT_MESSAGE = "Please include content or a link with content."
GENERIC_FAILURE_MESSAGE = "Failed to process content. Please try again with a different tweet/link."


class TweetMindError(Exception):
    pass


class MissingContentError(TweetMindError):
    def __init__(self, message: str = MISSING_CONTENT_MESSAGE) -> None:
        super().__init__(message)


class GenerationError(TweetMindError):
    pass


class MalformedResponseError(GenerationError):
    pass


class StoreError(TweetMindError):
    pass


class CategoryMismatchError(StoreError):
    def __init__(self, *, item_id: str, item_category: str, patch_category: str) -> None:
        super().__init__(
            f"Item {item_id} is a {item_category} item; cannot store {patch_category} data."
        )
        self.item_id = item_id
        self.item_category = item_category
        self.patch_category = patch_category


class ItemNotFoundError(StoreError):
    def __init__(self, item_id: str) -> None:
        super().__init__(f"Item not found: {item_id}")
        self.item_id = item_id
