"""外部サービス連携"""
