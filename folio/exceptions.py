class FolioException(Exception):
    """FOLIO 系统基础异常类"""
    def __init__(self, message, code=500, payload=None):
        super().__init__(message)
        self.message = message
        self.code = code
        self.payload = payload

    def to_dict(self):
        rv = dict(self.payload or ())
        rv['message'] = self.message
        rv['code'] = self.code
        rv['success'] = False
        return rv


class NotFound(FolioException):
    """站点 / 内容 / 栏目不存在"""
    def __init__(self, message="Not found", payload=None):
        super().__init__(message, code=404, payload=payload)


class ConfigError(FolioException):
    """必需的设置项缺失或非法"""
    def __init__(self, message="Invalid configuration", payload=None):
        super().__init__(message, code=400, payload=payload)


class GenerationError(FolioException):
    """单个页面渲染失败（通常被收集进报告，不中断生成）"""
    def __init__(self, message="Generation failed", payload=None):
        super().__init__(message, code=500, payload=payload)


class SyncError(FolioException):
    """Markdown 文件解析失败"""
    def __init__(self, message="Markdown sync failed", payload=None):
        super().__init__(message, code=422, payload=payload)


class ReimportConflict(FolioException):
    """文件与网页端内容都在上次导入后被修改，需要显式强制重新导入"""
    def __init__(self, message="Reimport conflict", payload=None):
        super().__init__(message, code=409, payload=payload)


class PublishError(FolioException):
    """git 命令失败，message 中保留原始输出"""
    def __init__(self, message="Publish failed", purpose='publish', payload=None):
        super().__init__(message, code=502, payload=payload)
        self.purpose = purpose

    def to_dict(self):
        rv = super().to_dict()
        rv['purpose'] = self.purpose
        return rv


class OperationCancelled(FolioException):
    """操作被取消或超时"""
    def __init__(self, message="Operation cancelled", payload=None):
        super().__init__(message, code=499, payload=payload)


class SiteBusy(FolioException):
    """同一站点已有生成 / 发布 / 备份任务在执行"""
    def __init__(self, message="Site is busy", payload=None):
        super().__init__(message, code=423, payload=payload)
