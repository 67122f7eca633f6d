"""统一异常体系

所有业务异常继承 BrewformError，每个异常带一个稳定的 code。
安装管线按阶段抛出对应异常，CLI 层据此输出失败阶段和友好提示。
"""

from __future__ import annotations


class BrewformError(Exception):
    """框架基础异常"""

    code: str = "UNKNOWN"
    stage: str = ""

    def __init__(self, message: str) -> None:
        super().__init__(message)


class ConfigError(BrewformError):
    """配置文件缺失或内容无效"""

    code = "CONFIG_ERROR"


class ValidationError(BrewformError):
    """输入数据校验失败"""

    code = "VALIDATION_ERROR"

    def __init__(self, message: str, details: list[str] | None = None) -> None:
        super().__init__(message)
        self.details = details or []


class DescriptorError(ValidationError):
    """formula 描述文件字段缺失或取值非法"""

    code = "DESCRIPTOR_ERROR"
    stage = "load"


class FormulaNotFoundError(BrewformError):
    """指定的 formula 不在仓库中"""

    code = "FORMULA_NOT_FOUND"


class NotInstalledError(BrewformError):
    """formula 存在但当前版本尚未安装"""

    code = "NOT_INSTALLED"
    stage = "test"


class VersionImmutableError(BrewformError):
    """已发布版本的来源被修改"""

    code = "VERSION_IMMUTABLE"
    stage = "publish"


class NoMatchingVariantError(BrewformError):
    """没有任何来源变体匹配当前平台"""

    code = "NO_MATCHING_VARIANT"
    stage = "resolve"


class DownloadError(BrewformError):
    """制品下载失败（网络错误或地址不可达）"""

    code = "DOWNLOAD_FAILURE"
    stage = "fetch"


class IntegrityMismatchError(BrewformError):
    """制品 sha256 与声明不一致，禁止安装"""

    code = "INTEGRITY_MISMATCH"
    stage = "verify"

    def __init__(self, path: str, expected: str, actual: str) -> None:
        super().__init__(f"校验和不匹配 {path}: 期望 {expected}, 实际 {actual}")
        self.path = path
        self.expected = expected
        self.actual = actual


class StepError(BrewformError):
    """安装/测试步骤以非零状态退出"""

    def __init__(self, step: str, returncode: int, stderr: str = "") -> None:
        tail = stderr.strip()[-500:]
        message = f"步骤失败 (rc={returncode}): {step}"
        if tail:
            message += f"\n{tail}"
        super().__init__(message)
        self.step = step
        self.returncode = returncode
        self.stderr = stderr


class InstallStepError(StepError):
    """安装步骤失败，剩余步骤被中止"""

    code = "INSTALL_STEP_FAILURE"
    stage = "install"


class TestStepError(StepError):
    """安装后冒烟测试失败（不回滚安装）"""

    __test__ = False  # 避免被 pytest 当作测试类收集

    code = "TEST_STEP_FAILURE"
    stage = "test"
