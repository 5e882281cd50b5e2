"""Minimal ABIs for the contracts the bot touches."""

AGGREGATOR_V3_ABI = [
    {
        "inputs": [],
        "name": "decimals",
        "outputs": [{"name": "", "type": "uint8"}],
        "stateMutability": "view",
        "type": "function",
    },
    {
        "inputs": [],
        "name": "latestRoundData",
        "outputs": [
            {"name": "roundId", "type": "uint80"},
            {"name": "answer", "type": "int256"},
            {"name": "startedAt", "type": "uint256"},
            {"name": "updatedAt", "type": "uint256"},
            {"name": "answeredInRound", "type": "uint80"},
        ],
        "stateMutability": "view",
        "type": "function",
    },
]

UNISWAP_V2_PAIR_ABI = [
    {
        "inputs": [],
        "name": "getReserves",
        "outputs": [
            {"name": "_reserve0", "type": "uint112"},
            {"name": "_reserve1", "type": "uint112"},
            {"name": "_blockTimestampLast", "type": "uint32"},
        ],
        "stateMutability": "view",
        "type": "function",
    },
    {
        "inputs": [
            {"name": "amount0Out", "type": "uint256"},
            {"name": "amount1Out", "type": "uint256"},
            {"name": "to", "type": "address"},
            {"name": "data", "type": "bytes"},
        ],
        "name": "swap",
        "outputs": [],
        "stateMutability": "nonpayable",
        "type": "function",
    },
]

TROVE_MANAGER_ABI = [
    {
        "inputs": [],
        "name": "getRedemptionRateWithDecay",
        "outputs": [{"name": "", "type": "uint256"}],
        "stateMutability": "view",
        "type": "function",
    },
    {
        "inputs": [],
        "name": "getEntireSystemDebt",
        "outputs": [{"name": "entireSystemDebt", "type": "uint256"}],
        "stateMutability": "view",
        "type": "function",
    },
    {
        "inputs": [
            {"name": "_LUSDamount", "type": "uint256"},
            {"name": "_firstRedemptionHint", "type": "address"},
            {"name": "_upperPartialRedemptionHint", "type": "address"},
            {"name": "_lowerPartialRedemptionHint", "type": "address"},
            {"name": "_partialRedemptionHintNICR", "type": "uint256"},
            {"name": "_maxIterations", "type": "uint256"},
            {"name": "_maxFeePercentage", "type": "uint256"},
        ],
        "name": "redeemCollateral",
        "outputs": [],
        "stateMutability": "nonpayable",
        "type": "function",
    },
]

HINT_HELPERS_ABI = [
    {
        "inputs": [
            {"name": "_LUSDamount", "type": "uint256"},
            {"name": "_price", "type": "uint256"},
            {"name": "_maxIterations", "type": "uint256"},
        ],
        "name": "getRedemptionHints",
        "outputs": [
            {"name": "firstRedemptionHint", "type": "address"},
            {"name": "partialRedemptionHintNICR", "type": "uint256"},
            {"name": "truncatedLUSDamount", "type": "uint256"},
        ],
        "stateMutability": "view",
        "type": "function",
    },
]

SORTED_TROVES_ABI = [
    {
        "inputs": [
            {"name": "_NICR", "type": "uint256"},
            {"name": "_prevId", "type": "address"},
            {"name": "_nextId", "type": "address"},
        ],
        "name": "findInsertPosition",
        "outputs": [
            {"name": "", "type": "address"},
            {"name": "", "type": "address"},
        ],
        "stateMutability": "view",
        "type": "function",
    },
]

PRICE_FEED_ABI = [
    {
        "inputs": [],
        "name": "lastGoodPrice",
        "outputs": [{"name": "", "type": "uint256"}],
        "stateMutability": "view",
        "type": "function",
    },
]

ARBITRAGE_BUNDLER_ABI = [
    {
        "inputs": [
            {"name": "amount", "type": "uint256"},
            {"name": "calls", "type": "bytes[]"},
        ],
        "name": "MakeCalls",
        "outputs": [],
        "stateMutability": "nonpayable",
        "type": "function",
    },
]
