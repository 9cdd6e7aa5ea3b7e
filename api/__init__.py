"""
API 層

FastAPI routers，只負責輸入驗證與錯誤轉換，業務邏輯都在 core/
"""
