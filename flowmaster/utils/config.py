"""
配置管理模块

管理调用流提取的配置参数：项目范围、支持的源码类型、递归上限等
"""

import os
from pathlib import Path
from typing import Any, Dict, Optional, Union
from dotenv import load_dotenv
from loguru import logger
import json


class Config:
    """配置管理器"""

    def __init__(self, config_file: Optional[str] = None, **overrides: Any):
        """
        初始化配置

        Args:
            config_file: JSON 配置文件路径，如果为None则使用默认配置
            **overrides: 直接覆盖的配置项（优先级最高）
        """
        load_dotenv()

        self._defaults: Dict[str, Any] = {
            # 项目范围
            'project_root': None,  # None 表示只按 excluded_path_parts 判断
            'excluded_path_parts': ['node_modules'],

            # 源码配置
            'supported_extensions': ['.ts', '.mts', '.cts', '.tsx', '.js', '.mjs', '.cjs', '.jsx'],
            # import 说明符的解析顺序
            'module_extensions': ['.ts', '.tsx', '.d.ts', '.js', '.jsx', '.mjs', '.cjs', '.mts', '.cts'],
            'max_file_size_mb': 10,
            'reject_syntax_errors': False,

            # 递归上限，None 表示不限制
            'max_depth': None,
            'max_steps': None,
            'timeout_seconds': 60,

            # 日志配置
            'log_level': 'INFO',
            'log_file': './logs/flowmaster.log',
        }

        self._load_from_env()

        if config_file:
            self._load_from_file(config_file)

        self._defaults.update(overrides)

    def _load_from_env(self):
        """从环境变量加载配置"""
        env_mappings = {
            'FLOWMASTER_PROJECT_ROOT': 'project_root',
            'FLOWMASTER_MAX_FILE_SIZE_MB': 'max_file_size_mb',
            'FLOWMASTER_REJECT_SYNTAX_ERRORS': 'reject_syntax_errors',
            'FLOWMASTER_MAX_DEPTH': 'max_depth',
            'FLOWMASTER_MAX_STEPS': 'max_steps',
            'FLOWMASTER_TIMEOUT_SECONDS': 'timeout_seconds',
            'FLOWMASTER_LOG_LEVEL': 'log_level',
            'FLOWMASTER_LOG_FILE': 'log_file',
        }

        for env_key, config_key in env_mappings.items():
            env_value = os.getenv(env_key)
            if env_value is None:
                continue
            if config_key in ['max_depth', 'max_steps', 'max_file_size_mb']:
                try:
                    self._defaults[config_key] = int(env_value)
                except ValueError:
                    logger.warning(f"环境变量 {env_key} 不是整数: {env_value}")
            elif config_key == 'timeout_seconds':
                try:
                    self._defaults[config_key] = float(env_value)
                except ValueError:
                    logger.warning(f"环境变量 {env_key} 不是数字: {env_value}")
            elif config_key == 'reject_syntax_errors':
                self._defaults[config_key] = env_value.strip().lower() in ('1', 'true', 'yes', 'on')
            else:
                self._defaults[config_key] = env_value

    def _load_from_file(self, config_file: str):
        """从配置文件加载配置"""
        config_path = Path(config_file)
        if not config_path.exists():
            logger.warning(f"配置文件不存在: {config_path}")
            return
        try:
            with open(config_path, 'r', encoding='utf-8') as f:
                file_config = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"加载配置文件失败: {e}")
            return

        for key, value in file_config.items():
            if key in self._defaults:
                self._defaults[key] = value
            else:
                logger.debug(f"忽略未知配置项: {key}")

    def get(self, key: str, default: Any = None) -> Any:
        """
        获取配置值

        Args:
            key: 配置键
            default: 默认值

        Returns:
            配置值
        """
        return self._defaults.get(key, default)

    def set(self, key: str, value: Any):
        """设置配置值"""
        self._defaults[key] = value

    def update(self, config_dict: Dict[str, Any]):
        """批量更新配置"""
        self._defaults.update(config_dict)

    def save_to_file(self, config_file: str):
        """保存配置到文件"""
        config_path = Path(config_file)
        config_path.parent.mkdir(parents=True, exist_ok=True)
        with open(config_path, 'w', encoding='utf-8') as f:
            json.dump(self._defaults, f, ensure_ascii=False, indent=2)

    def get_project_root(self) -> Optional[Path]:
        """获取项目根目录（未配置时返回 None）"""
        root = self.get('project_root')
        if not root:
            return None
        return Path(root).resolve()

    def is_supported_file(self, file_path: Union[str, Path]) -> bool:
        """
        检查文件扩展名是否属于支持的源码类型

        Args:
            file_path: 文件路径

        Returns:
            是否支持
        """
        suffix = Path(file_path).suffix.lower()
        return suffix in self.get('supported_extensions', [])

    def is_project_path(self, file_path: Union[str, Path]) -> bool:
        """
        判断文件是否属于项目代码（排除第三方库路径和项目根目录之外的文件）

        Args:
            file_path: 文件路径

        Returns:
            是否为项目内文件
        """
        path = Path(file_path)
        excluded = set(self.get('excluded_path_parts', []))
        if any(part in excluded for part in path.parts):
            return False

        root = self.get_project_root()
        if root is None:
            return True
        try:
            path.resolve().relative_to(root)
        except ValueError:
            return False
        return True

    def to_dict(self) -> Dict[str, Any]:
        """转换为字典"""
        return self._defaults.copy()

    def __getattr__(self, name: str) -> Any:
        """支持点号访问配置"""
        if name.startswith('_'):
            raise AttributeError(name)
        if name in self._defaults:
            return self._defaults[name]
        raise AttributeError(f"配置项 '{name}' 不存在")

    def __repr__(self) -> str:
        return f"Config({len(self._defaults)} items)"
