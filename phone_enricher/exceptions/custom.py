class NavigationFailure(Exception):
    def __init__(self, url: str, message: str):
        self.url = url
        self.message = message
        super().__init__(f"Failed to navigate to {url}: {message}")


class PageQueryError(Exception):
    def __init__(self, selector: str, message: str):
        self.selector = selector
        self.message = message
        super().__init__(f"Query {selector!r} failed: {message}")


class BrowserUnavailableError(Exception):
    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class RecordAlreadyEnrichedError(Exception):
    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Record {name!r} already has a scraped phone")


class MalformedInputError(Exception):
    def __init__(self, message: str, row: int | None = None):
        self.message = message
        self.row = row
        super().__init__(message)


class InputFileError(Exception):
    def __init__(self, message: str, path: str | None = None):
        self.message = message
        self.path = path
        super().__init__(message)


class EmptyBatchError(Exception):
    def __init__(self, message: str = "No places found in CSV"):
        self.message = message
        super().__init__(message)


class PersistenceError(Exception):
    def __init__(self, message: str, path: str | None = None):
        self.message = message
        self.path = path
        super().__init__(message)


class PipelineProcessError(Exception):
    def __init__(self, stage: str, message: str, returncode: int | None = None):
        self.stage = stage
        self.message = message
        self.returncode = returncode
        super().__init__(f"{stage}: {message}")


class PipelineTimeoutError(Exception):
    def __init__(self, stage: str, timeout: float):
        self.stage = stage
        self.timeout = timeout
        self.message = (
            f"El pipeline tardó más de {timeout / 60:.0f} minutos y fue cancelado. "
            "Prueba con un radio menor."
        )
        super().__init__(self.message)
