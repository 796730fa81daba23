#!/usr/bin/env python3
"""
Compiles the CredentialRegistry contract and stores its ABI and bytecode
"""
import json
import os
import sys

from solcx import compile_standard, install_solc

SOLC_VERSION = "0.8.19"
CONTRACTS_DIR = os.path.join(os.path.dirname(__file__), "contracts")


def compile_contract(solidity_file, output_dir):
    """
    Compiles a Solidity contract.

    Args:
        solidity_file: Path of the .sol source; the contract must be named after the file
        output_dir: Directory receiving <ContractName>.json

    Returns:
        str: Path of the written JSON file
    """
    os.makedirs(output_dir, exist_ok=True)
    install_solc(SOLC_VERSION)

    with open(solidity_file, 'r') as f:
        contract_source = f.read()

    source_name = os.path.basename(solidity_file)
    compiled_sol = compile_standard(
        {
            "language": "Solidity",
            "sources": {source_name: {"content": contract_source}},
            "settings": {
                "outputSelection": {
                    "*": {"*": ["abi", "evm.bytecode"]}
                }
            }
        },
        solc_version=SOLC_VERSION
    )

    contract_name = os.path.splitext(source_name)[0]
    contract_data = compiled_sol["contracts"][source_name][contract_name]

    output_file = os.path.join(output_dir, f"{contract_name}.json")
    with open(output_file, 'w') as f:
        json.dump({
            "abi": contract_data["abi"],
            "bytecode": contract_data["evm"]["bytecode"]["object"]
        }, f, indent=2)

    print(f"Contract compiled. ABI and bytecode written to {output_file}")
    return output_file


if __name__ == "__main__":
    if len(sys.argv) > 3:
        print("Usage: python -m acadchain.compile_contract [solidity_file] [output_dir]")
        sys.exit(1)

    solidity_file = sys.argv[1] if len(sys.argv) > 1 else os.path.join(CONTRACTS_DIR, "CredentialRegistry.sol")
    output_dir = sys.argv[2] if len(sys.argv) > 2 else CONTRACTS_DIR

    compile_contract(solidity_file, output_dir)
