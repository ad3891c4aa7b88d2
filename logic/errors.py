"""
エンジンが呼び出し元に返す拒否理由
"""


class EngineError(ValueError):
    """不正な操作。状態は一切変更されていない"""

    code = 'engine_error'

    def to_dict(self) -> dict:
        return {'error': str(self), 'code': self.code}


class IllegalAction(EngineError):
    """手番外の操作、権利のない鳴き、下家以外の吃、終局後の操作など"""

    code = 'illegal_action'


class MalformedInput(EngineError):
    """存在しない席、手牌にない牌、未知の行動名など"""

    code = 'malformed_input'
