"""
例外階層

コア処理は不正な入力をすべて no-op として扱うため、ここで定義する例外は
プログラミングエラーと周辺I/O（設定・セッション・接続）の失敗に限られます。
"""


class WaaierError(Exception):
    """Waaier Bot エラー基底クラス"""
    pass


class InvalidTransitionError(WaaierError):
    """状態機械で到達し得ない遷移が要求された"""
    pass


class ConfigurationError(WaaierError):
    """設定読み込みエラー"""
    pass


class SessionStoreError(WaaierError):
    """セッション保存・読み込みエラー"""
    pass


class SessionNotFoundError(SessionStoreError):
    """保存済みセッションが存在しない"""
    pass


class LoginError(WaaierError):
    """ログイン・セッション復元エラー"""
    pass


class ConnectionCheckError(WaaierError):
    """電話端末との疎通確認エラー"""
    pass
