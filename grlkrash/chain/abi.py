# Minimal ABIs for the contracts the agent touches.

TRANSFER_EVENT = {
    "anonymous": False,
    "inputs": [
        {"indexed": True, "name": "from", "type": "address"},
        {"indexed": True, "name": "to", "type": "address"},
        {"indexed": False, "name": "value", "type": "uint256"},
    ],
    "name": "Transfer",
    "type": "event",
}


def _view(name, inputs, output="uint256"):
    return {
        "constant": True,
        "inputs": inputs,
        "name": name,
        "outputs": [{"name": "", "type": output}],
        "stateMutability": "view",
        "type": "function",
    }


def _write(name, inputs):
    return {
        "constant": False,
        "inputs": inputs,
        "name": name,
        "outputs": [],
        "stateMutability": "nonpayable",
        "type": "function",
    }


MORE_TOKEN_ABI = [
    _view("balanceOf", [{"name": "account", "type": "address"}]),
    _view("totalSupply", []),
    _view("decimals", [], output="uint8"),
    {
        "constant": False,
        "inputs": [
            {"name": "_to", "type": "address"},
            {"name": "_value", "type": "uint256"},
        ],
        "name": "transfer",
        "outputs": [{"name": "", "type": "bool"}],
        "payable": False,
        "stateMutability": "nonpayable",
        "type": "function",
    },
    # Rates are basis points (10000 = 100%)
    _write("enableCommunityRewards", [
        {"name": "streamingMultiplierBps", "type": "uint256"},
        {"name": "maxRewardRateBps", "type": "uint256"},
        {"name": "minStakeAmount", "type": "uint256"},
    ]),
    _write("enableNFTMinting", [
        {"name": "maxSupply", "type": "uint256"},
        {"name": "mintPrice", "type": "uint256"},
        {"name": "streamingBonusBps", "type": "uint256"},
    ]),
    TRANSFER_EVENT,
]

MEMORY_CRYSTAL_ABI = [
    _view("balanceOf", [{"name": "owner", "type": "address"}]),
    _view("totalSupply", []),
]
