# ユーティリティ - ログ設定、エラーハンドリング
