#!/usr/bin/env python
"""Installation script to create virtual environment and install package."""

import os
import sys
import subprocess
import platform
import shutil


def run_command(cmd, description):
    """Run a command and handle errors."""
    print(f"\n{'='*60}")
    print(f"[*] {description}")
    print(f"{'='*60}")
    try:
        result = subprocess.run(cmd, shell=True, check=True)
        print(f"[OK] {description} - Success!")
        return result.returncode
    except subprocess.CalledProcessError:
        print(f"[ERR] {description} - Failed!")
        sys.exit(1)


def main():
    print("\n" + "="*60)
    print("[SETUP] Unscroll - One-Time Setup")
    print("="*60)

    is_windows = platform.system() == "Windows"
    with_firestore = "--firestore" in sys.argv[1:]

    if os.path.exists(".venv"):
        print("\n[*] Removing existing virtual environment...")
        shutil.rmtree(".venv")

    print("\n[1/3] Creating virtual environment...")
    venv_cmd = "py -m venv .venv" if is_windows else "python3 -m venv .venv"
    run_command(venv_cmd, "Create virtual environment")

    print("\n[2/3] Installing package...")
    python = ".venv\\Scripts\\python.exe" if is_windows else "./.venv/bin/python"
    extras = "[test,firestore]" if with_firestore else "[test]"
    run_command(f'{python} -m pip install -e ".{extras}"', "Install package and dependencies")

    print("\n[3/3] Preparing configuration...")
    os.makedirs("data", exist_ok=True)
    config_path = os.path.join("data", "config.yaml")
    if not os.path.exists(config_path):
        shutil.copy("config.example.yaml", config_path)
        print(f"[OK] Created {config_path}")
    else:
        print(f"[OK] Keeping existing {config_path}")

    print("\n" + "="*60)
    print("[OK] Setup Complete!")
    print("="*60)
    print("\n[NEXT] What to do now:")
    print(f"\n1. Edit {config_path} (optional keys enable extra features):")
    print("   tmdb.api_key     - movie search and details")
    print("   openai.api_key   - autofill, reviews, recommendations")

    print("\n2. Activate virtual environment:")
    if is_windows:
        print("   .venv\\Scripts\\activate")
    else:
        print("   source .venv/bin/activate")

    print("\n3. Run commands:")
    print('   unscroll add "The Thing" --year 1982')
    print("   unscroll decide --mood scary")
    print("   unscroll serve")

    print("\n" + "="*60 + "\n")


if __name__ == "__main__":
    main()
