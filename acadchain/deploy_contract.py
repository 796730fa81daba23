#!/usr/bin/env python3
"""
Deploys the compiled CredentialRegistry contract
"""
import json
import sys

from web3 import Web3
from web3.middleware import ExtraDataToPOAMiddleware

from .config import Config


def deploy_contract(contract_json_path, rpc_url, private_key):
    """Deploys the contract and returns its address, None when the node is unreachable"""
    web3 = Web3(Web3.HTTPProvider(rpc_url))
    web3.middleware_onion.inject(ExtraDataToPOAMiddleware, layer=0)

    if not web3.is_connected():
        print(f"Could not connect to {rpc_url}. Make sure the node is running.")
        return None

    with open(contract_json_path, 'r') as f:
        contract_data = json.load(f)

    if not contract_data.get("bytecode"):
        print(f"{contract_json_path} has no bytecode. Run acadchain.compile_contract first.")
        return None

    account = web3.eth.account.from_key(private_key)
    address = account.address
    chain_id = web3.eth.chain_id
    print(f"Deploying CredentialRegistry to {Config.CHAIN_NAMES.get(chain_id, chain_id)} from {address}")

    balance = web3.eth.get_balance(address)
    print(f"Account balance: {web3.from_wei(balance, 'ether')}")

    contract_instance = web3.eth.contract(abi=contract_data["abi"], bytecode=contract_data["bytecode"])
    txn = contract_instance.constructor().build_transaction({
        'from': address,
        'nonce': web3.eth.get_transaction_count(address),
    })

    signed_txn = account.sign_transaction(txn)
    txn_hash = web3.eth.send_raw_transaction(signed_txn.raw_transaction)
    print(f"Transaction sent: {web3.to_hex(txn_hash)}")

    txn_receipt = web3.eth.wait_for_transaction_receipt(txn_hash)
    contract_address = txn_receipt.contractAddress

    print(f"CredentialRegistry deployed to: {contract_address}")
    print(f"Add this to your environment: CONTRACT_ADDRESS={contract_address}")
    return contract_address


if __name__ == "__main__":
    if len(sys.argv) < 3:
        print("Usage: python -m acadchain.deploy_contract <contract_json> <private_key> [rpc_url]")
        sys.exit(1)

    contract_json_path = sys.argv[1]
    private_key = sys.argv[2]
    rpc_url = sys.argv[3] if len(sys.argv) > 3 else Config.LEDGER_RPC_URL

    deploy_contract(contract_json_path, rpc_url, private_key)
