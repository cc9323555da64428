# periploko/errors.py
"""
错误分类：
- 只有 NotFound / InvalidRequest（含 416）会以状态码返回给客户端；
- 其余失败在组件边界被吞成部分数据，并写日志。
"""


class PeriplokoError(Exception):
    status_code = 500

    def __init__(self, message: str = ""):
        super().__init__(message)
        self.message = message or self.__class__.__name__


class NotFound(PeriplokoError):
    status_code = 404


class InvalidRequest(PeriplokoError):
    status_code = 400


class RangeNotSatisfiable(InvalidRequest):
    status_code = 416

    def __init__(self, file_size: int, message: str = "range-not-satisfiable"):
        super().__init__(message)
        self.file_size = file_size


class ProbeFailure(PeriplokoError):
    pass


class EnrichmentFailure(PeriplokoError):
    pass


class TranscodeFailure(PeriplokoError):
    pass


class ScanEntryFailure(PeriplokoError):
    # path 相对于第 root 个媒体根
    def __init__(self, path: str, message: str, root: int = 0):
        super().__init__(message)
        self.path = path
        self.root = root
