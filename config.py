"""
エンジンとWebアプリの設定
"""
from __future__ import annotations

import os
import sys
from typing import Optional

import yaml
from loguru import logger
from pydantic import BaseModel, Field

CONFIG_ENV = 'MAHJONG_CONFIG'


class EngineConfig(BaseModel):
    claim_timeout_ms: int = Field(3000, gt=0)  # 鳴き受付の締め切り
    seed: Optional[int] = None                 # 山のシャッフル用（再現したい時のみ）
    log_level: str = 'INFO'


class WebConfig(BaseModel):
    secret_key: str = 'change-me'
    host: str = '127.0.0.1'
    port: int = 3001
    debug: bool = False


class Config(BaseModel):
    engine: EngineConfig = EngineConfig()
    web: WebConfig = WebConfig()


def load_config(path: Optional[str] = None) -> Config:
    """
    YAML から設定を読み込む。path が無ければ環境変数 MAHJONG_CONFIG、それも無ければ既定値
    """
    path = path or os.environ.get(CONFIG_ENV)
    if not path:
        return Config()
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    return Config(**data)


def configure_logging(level: str) -> None:
    """loguru の出力先を stderr の1つにまとめ、レベルを設定する"""
    logger.remove()
    logger.add(sys.stderr, level=level.upper())
