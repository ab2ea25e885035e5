#!/usr/bin/env python3
"""
Script to generate Python modules from the Protocol Buffer definitions.

Compiles src/agilestack/proto/*.proto into *_pb2.py modules next to them.
The registry exposes no gRPC services, so only message code is generated.
"""

import re
import subprocess
import sys
from pathlib import Path


def generate_messages():
    """Generate Python message modules from proto files."""

    script_dir = Path(__file__).parent
    project_root = script_dir.parent
    proto_dir = project_root / "src" / "agilestack" / "proto"

    if not proto_dir.exists():
        print(f"Error: Proto directory not found: {proto_dir}")
        return False

    proto_files = list(proto_dir.glob("*.proto"))
    if not proto_files:
        print(f"No .proto files found in {proto_dir}")
        return False

    print(f"Found {len(proto_files)} proto file(s):")
    for proto_file in proto_files:
        print(f"  - {proto_file.name}")

    success = True
    for proto_file in proto_files:
        print(f"\nGenerating messages for {proto_file.name}...")

        cmd = [
            sys.executable, "-m", "grpc_tools.protoc",
            f"--proto_path={proto_dir}",
            f"--python_out={proto_dir}",
            str(proto_file)
        ]

        try:
            subprocess.run(
                cmd,
                cwd=project_root,
                capture_output=True,
                text=True,
                check=True
            )
            print(f"Generated messages for {proto_file.name}")

        except subprocess.CalledProcessError as e:
            print(f"Failed to generate messages for {proto_file.name}")
            print(f"Error: {e.stderr}")
            success = False
        except FileNotFoundError:
            print("grpc_tools.protoc not found. Please install grpcio-tools:")
            print("  pip install -e .[dev]")
            return False

    if success:
        generated_files = list(proto_dir.glob("*_pb2.py"))
        # Generated modules import each other by bare name; the package needs relative imports.
        for gen_file in generated_files:
            text = gen_file.read_text()
            text = re.sub(r"^import (\w+_pb2) as (\w+)$", r"from . import \1 as \2", text, flags=re.M)
            text = re.sub(r"^from (\w+_pb2) import (.+)$", r"from .\1 import \2", text, flags=re.M)
            gen_file.write_text(text)

        print("\nGenerated files:")
        for gen_file in generated_files:
            print(f"  - {gen_file.name}")

    return success


def main():
    """Main entry point."""
    print("AgileStack plugin registry - protobuf generator")
    print("=" * 50)

    if generate_messages():
        sys.exit(0)
    print("\nGeneration failed!")
    sys.exit(1)


if __name__ == "__main__":
    main()
