"""Push 异常体系"""


class PushError(Exception):
    """Push 包基础异常"""

    def __init__(self, message: str, recoverable: bool = True) -> None:
        """
        Args:
            message: 错误描述
            recoverable: 是否可通过下一次 cron 重试恢复
        """
        super().__init__(message)
        self.recoverable = recoverable


class RelayUnreachableError(PushError):
    """推送中继不可达（连接失败、超时、DNS 解析失败等）"""

    def __init__(self, relay_url: str, original_error: Exception) -> None:
        super().__init__(
            f"Push relay unreachable: {relay_url} -- {original_error}",
            recoverable=True,
        )
        self.relay_url = relay_url
        self.original_error = original_error


class MalformedPushPayloadError(PushError):
    """push 字节无法解析或缺少必填字段

    worker 内部捕获后静默丢弃，不向用户展示任何通知。
    """

    def __init__(self, reason: str) -> None:
        super().__init__(f"Malformed push payload: {reason}", recoverable=False)
        self.reason = reason
