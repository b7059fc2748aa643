"""錯誤類型."""


class TokenPipelineError(Exception):
    """所有管線錯誤的基底類別."""


class MalformedInput(TokenPipelineError):
    """輸入不是合法 JSON，整份檔案不匯入."""


class EmptyCompilationInput(TokenPipelineError):
    """沒有可編譯的 token；既有 bundle 維持原版本."""

    def __init__(self, message: str = "No active tokens to compile. Import or activate a token file first."):
        super().__init__(message)
