"""
调用流提取的异常类型

所有异常都在遇到它的分支内部恢复，不会中断兄弟分支或整个请求。
"""


class FlowExtractionError(Exception):
    """提取过程异常基类"""


class UnreadableSource(FlowExtractionError):
    """源文件不存在或无法解析"""

    def __init__(self, file_path: str, reason: str):
        self.file_path = file_path
        self.reason = reason
        super().__init__(f"无法解析文件 {file_path}: {reason}")


class UnresolvedSymbol(FlowExtractionError):
    """函数/作用域未找到"""

    def __init__(self, name: str, file_path: str):
        self.name = name
        self.file_path = file_path
        super().__init__(f"未找到函数 {name}（{file_path}）")


class CycleOrDuplicate(FlowExtractionError):
    """作用域在本次请求中已展开过"""

    def __init__(self, visited_key: str):
        self.visited_key = visited_key
        super().__init__(f"已访问: {visited_key}")


class MalformedBounds(FlowExtractionError):
    """起止行号不一致"""

    def __init__(self, start_line, end_line):
        self.start_line = start_line
        self.end_line = end_line
        super().__init__(f"行范围无效: {start_line}-{end_line}")
