"""
核心業務邏輯層

這個 package 包含所有核心業務邏輯，包括：
- RaffleManager：單一抽獎的販售與揭曉狀態機
- RegistryManager：建立並登記抽獎
- Ledger：區塊高度、帳戶餘額、事件紀錄
- Entropy：揭曉時使用的外部熵來源
- Locks：並發控制工具
"""
