"""
承諾（Provenance）計算服務

建立抽獎時公開的承諾值是

    keccak256(salt ++ uint256(indices[0]) ++ ... ++ uint256(indices[n-1]))

也就是 Solidity 的 abi.encodePacked(bytes, uint256[])：salt 的原始位元組，
後面接每一個 index 的 32-byte big-endian 編碼。
打包方式必須一模一樣，已經發布的承諾才驗證得過。

純計算，沒有狀態
"""
import secrets
from typing import List, Sequence, Tuple

from Crypto.Hash import keccak

UINT256_MAX = 2 ** 256 - 1
ZERO_HASH = "0x" + "0" * 64


def parse_hex(value: str) -> bytes:
    """
    解析 0x 開頭的 hex 字串

    異常：
        ValueError: 沒有 0x 前綴、位數是奇數、或含有非 hex 字元
    """
    if not isinstance(value, str) or not value.startswith(("0x", "0X")):
        raise ValueError(f"Expected a 0x-prefixed hex string, got {value!r}")
    body = value[2:]
    if len(body) % 2:
        raise ValueError(f"Hex string has an odd number of digits: {value!r}")
    return bytes.fromhex(body)


def normalize_hash(value: str) -> str:
    """檢查是 32 bytes 的 hash，並轉成小寫"""
    raw = parse_hex(value)
    if len(raw) != 32:
        raise ValueError(f"Expected a 32-byte hash, got {len(raw)} bytes")
    return "0x" + raw.hex()


def is_zero_hash(value: str) -> bool:
    return int.from_bytes(parse_hex(value), "big") == 0


def pack_commitment(salt: bytes, indices: Sequence[int]) -> bytes:
    words = []
    for index in indices:
        if isinstance(index, bool) or not isinstance(index, int):
            raise ValueError(f"Index must be an integer, got {index!r}")
        if index < 0 or index > UINT256_MAX:
            raise ValueError(f"Index {index} does not fit in uint256")
        words.append(index.to_bytes(32, "big"))
    return salt + b"".join(words)


def compute_provenance_hash(indices: Sequence[int], salt: str) -> str:
    """
    計算 (indices, salt) 的承諾值

    範例：
        compute_provenance_hash([3, 2, 1, 0], "0xa7571219")
        -> "0x74431f12a115a6bdf6762a0a2a382f2fafe67665e085a49dd4d32af49c76853b"

    異常：
        ValueError: salt 不是合法的 hex，或 index 不是 uint256 範圍內的整數
    """
    h = keccak.new(digest_bits=256)
    h.update(pack_commitment(parse_hex(salt), indices))
    return "0x" + h.hexdigest()


def verify_provenance(indices: Sequence[int], salt: str, provenance_hash: str) -> bool:
    # 格式錯誤一律視為不相符
    try:
        return compute_provenance_hash(indices, salt) == normalize_hash(provenance_hash)
    except ValueError:
        return False


def generate_provenance(slot_count: int, salt_bytes: int = 32) -> Tuple[List[int], str, str]:
    """
    為 slot_count 個名額的抽獎產生一組新的得主序列

    參數：
        slot_count: 名額數量（至少 2）
        salt_bytes: salt 長度

    返回：
        (indices, salt, provenance_hash)
        indices 是 0..slot_count-1 均勻洗牌後的排列。
        管理員在揭曉前要保密 indices 與 salt，只公開 hash。
    """
    if slot_count < 2:
        raise ValueError(f"A raffle needs at least 2 slots, got {slot_count}")
    indices = list(range(slot_count))
    secrets.SystemRandom().shuffle(indices)
    salt = "0x" + secrets.token_hex(salt_bytes)
    return indices, salt, compute_provenance_hash(indices, salt)
