"""
命名服務：身分正規化與合約地址推導

純計算邏輯，不涉及狀態轉換
"""
from Crypto.Hash import keccak

ZERO_ADDRESS = "0x" + "0" * 40


def normalize_address(address: str) -> str:
    """
    正規化身分字串：去掉前後空白並轉小寫

    範例：
        " 0xAbC...  " -> "0xabc..."

    注意：
    - 所有比對（是不是管理員、是不是同一個買家）都用正規化後的值
    """
    return address.strip().lower()


def is_zero_address(address: str) -> bool:
    return not address or normalize_address(address) == ZERO_ADDRESS


def derive_contract_address(creator: str, nonce: int) -> str:
    """
    由建立者與 nonce 推導新合約地址

    格式：keccak256(creator ++ nonce) 的最後 20 bytes，加上 0x 前綴

    參數：
        creator: 建立者身分
        nonce: 建立者目前的 nonce（每建立一次 +1）

    返回：
        0x 開頭、40 個小寫 hex 字元的地址
    """
    h = keccak.new(digest_bits=256)
    h.update(normalize_address(creator).encode("utf-8"))
    h.update(nonce.to_bytes(32, "big"))
    return "0x" + h.hexdigest()[-40:]
