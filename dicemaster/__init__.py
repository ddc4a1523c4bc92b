"""
DiceMaster
以太坊区块哈希做种的 DnD 掷骰服务
"""
__version__ = "1.0.0"
