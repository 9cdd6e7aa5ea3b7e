"""
服務層

這個 package 包含純計算邏輯，不負責狀態轉換：
- ProvenanceService：承諾的打包、雜湊、產生與驗證
- PhaseService：抽獎階段推導
- NamingService：身分正規化與合約地址推導
"""
