"""Identifier normalization shared by the crawler, extractor and sync state."""


def normalize_id(document_id: str) -> str:
    """
    Normalize a content store id so formatting differences map to one key.

    The store returns the same UUID both hyphenated and bare, so hyphens are
    dropped and hex digits lower-cased.

    Examples:
        normalize_id("1fd13eda-c11f-803b")  # "1fd13edac11f803b"
    """
    return document_id.strip().replace('-', '').lower()
