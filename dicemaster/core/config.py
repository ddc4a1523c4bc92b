"""
配置读取模块

加载顺序（后者覆盖前者）：
1. config.yaml   业务配置
2. secrets.ini   敏感信息（Bot Token、RPC 地址）
3. 环境变量       TELEGRAM_BOT_TOKEN / TELEGRAM_API / ETH_RPC_URL / DICE_REFRESH_INTERVAL
"""

import os
import yaml
import configparser
from pathlib import Path
from typing import Dict, Optional, Any
from dotenv import load_dotenv
from pydantic import BaseModel, Field, model_validator
from .logger import get_logger

logger = get_logger(__name__)

# 项目根目录
PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent


class ProjectConfig(BaseModel):
    """项目基础配置"""
    name: str = Field("DiceMaster", description="项目名称")
    debug: bool = Field(False, description="调试模式")


class DiceConfig(BaseModel):
    """掷骰规则配置"""
    max_count: int = Field(1000, gt=0, description="骰子数量上限")
    max_faces: int = Field(1000, gt=0, description="骰子面数上限")
    default_count: int = Field(1, gt=0, description="表达式无法解析时的默认骰子数量")
    default_faces: int = Field(20, gt=0, description="表达式无法解析时的默认面数")
    default_query: str = Field("1d20>10", description="空查询时使用的表达式")
    default_threshold: Optional[int] = Field(10, description="未指定 >阈值 时的检定值，null 表示不检定")

    @model_validator(mode='after')
    def check_defaults_within_limits(self):
        """默认骰子本身不能超出上限"""
        if self.default_count > self.max_count or self.default_faces > self.max_faces:
            raise ValueError("默认骰子超出了数量/面数上限")
        return self


class EntropyConfig(BaseModel):
    """熵源配置"""
    refresh_interval: float = Field(12.0, gt=0, description="区块哈希刷新间隔（秒）")
    rpc_url: Optional[str] = Field(None, description="以太坊 JSON-RPC 地址")
    request_timeout: float = Field(10.0, gt=0, description="单次 RPC 请求超时（秒）")


class TelegramConfig(BaseModel):
    """Telegram Bot 配置"""
    token: Optional[str] = Field(None, description="Bot Token")
    api_url: str = Field("https://api.telegram.org", description="Bot API 地址")
    poll_timeout: int = Field(10, gt=0, description="长轮询超时（秒）")


class ApiServerConfig(BaseModel):
    """HTTP 服务配置"""
    host: str = "0.0.0.0"
    port: int = 8000
    reload: bool = False


# ============================================
# 主配置类
# ============================================

class Settings(BaseModel):
    """
    应用总配置
    """

    project: ProjectConfig = Field(default_factory=ProjectConfig)
    dice: DiceConfig = Field(default_factory=DiceConfig)
    entropy: EntropyConfig = Field(default_factory=EntropyConfig)
    telegram: TelegramConfig = Field(default_factory=TelegramConfig)
    api_server: ApiServerConfig = Field(default_factory=ApiServerConfig)

    @property
    def PROJECT_NAME(self) -> str:
        return self.project.name

    @property
    def DEBUG(self) -> bool:
        return self.project.debug

    @classmethod
    def load_config(cls, root: Optional[Path] = None) -> "Settings":
        """
        1. 读取 config.yaml
        2. 读取 secrets.ini 并合并
        3. 应用环境变量覆盖
        """
        root = root or PROJECT_ROOT
        yaml_config = cls._load_yaml(root / "config.yaml")

        for section, values in cls._load_secrets_ini(root / "secrets.ini").items():
            yaml_config[section] = {**(yaml_config.get(section) or {}), **values}

        load_dotenv(root / ".env")
        for section, values in cls._load_env_overrides().items():
            yaml_config[section] = {**(yaml_config.get(section) or {}), **values}

        instance = cls(**yaml_config)
        instance._ensure_directories(root)
        return instance

    @staticmethod
    def _load_yaml(yaml_path: Path) -> Dict[str, Any]:
        if not yaml_path.exists():
            logger.warning(f"未找到 {yaml_path}，将使用默认配置")
            return {}

        try:
            with open(yaml_path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except Exception as e:
            logger.warning(f"无法读取 config.yaml: {e}，将使用默认配置")
            return {}

        if not isinstance(data, dict):
            logger.warning(f"config.yaml 顶层必须是映射，实际为 {type(data).__name__}，将使用默认配置")
            return {}
        # 空小节（如只写了 "telegram:"）按未配置处理
        return {key: value for key, value in data.items() if value is not None}

    @staticmethod
    def _load_secrets_ini(ini_path: Path) -> Dict[str, Dict[str, Any]]:
        """
        从 secrets.ini 加载敏感配置

        [telegram]
        token = ...

        [ethereum]
        rpc_url = ...
        """
        result: Dict[str, Dict[str, Any]] = {}

        if not ini_path.exists():
            logger.debug(f"未找到 {ini_path}，敏感配置将只从环境变量读取")
            return result

        try:
            config = configparser.ConfigParser()
            config.read(ini_path, encoding='utf-8')

            token = config.get("telegram", "token", fallback=None)
            if token:
                result["telegram"] = {"token": token}

            rpc_url = config.get("ethereum", "rpc_url", fallback=None)
            if rpc_url:
                result["entropy"] = {"rpc_url": rpc_url}

            logger.info(f"成功加载敏感配置: {', '.join(result) or '无'}")
        except Exception as e:
            logger.warning(f"无法读取 secrets.ini: {e}")

        return result

    @staticmethod
    def _load_env_overrides() -> Dict[str, Dict[str, Any]]:
        """环境变量覆盖，变量名与部署脚本保持一致"""
        overrides: Dict[str, Dict[str, Any]] = {}

        env_map = {
            "TELEGRAM_BOT_TOKEN": ("telegram", "token"),
            "TELEGRAM_API": ("telegram", "api_url"),
            "ETH_RPC_URL": ("entropy", "rpc_url"),
            "DICE_REFRESH_INTERVAL": ("entropy", "refresh_interval"),
        }
        for env_name, (section, key) in env_map.items():
            value = os.getenv(env_name)
            if value:
                overrides.setdefault(section, {})[key] = value

        return overrides

    def _ensure_directories(self, root: Path):
        (root / "logs").mkdir(parents=True, exist_ok=True)


# 实例化配置 (应用启动时自动加载)
settings = Settings.load_config()


# ============================================
# 便捷函数
# ============================================

def get_settings() -> Settings:
    """
    获取全局配置实例
    """
    return settings


def reload_config() -> Settings:
    """
    重新加载配置
    """
    global settings
    settings = Settings.load_config()
    return settings
