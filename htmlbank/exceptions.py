class ContentBankError(Exception):
    """Base class for failures that abort an editor request."""


class InvalidContext(ContentBankError):
    def __init__(self, contextid):
        super().__init__(f'Invalid context id: {contextid!r}')
        self.contextid = contextid


class ContentNotFound(ContentBankError):
    def __init__(self, contentid):
        super().__init__(f'Content {contentid!r} does not exist')
        self.contentid = contentid
