"""共通ライブラリ（設定・ロギング・例外）"""
