import os
import sys
from datetime import timedelta
from pathlib import Path

from dotenv import load_dotenv

_project_root = Path(__file__).resolve().parent.parent
if str(_project_root) not in sys.path:
    sys.path.append(str(_project_root))

load_dotenv()

from planledger.app.auth import CredentialVerifier
from planledger.app.config import load_engine_config


def main():
    config = load_engine_config()
    user_id = input("User id: ").strip()
    email = input("Email (optional): ").strip()
    role = input("Role [admin]: ").strip() or config.admin_role
    hours = int(os.getenv("TOKEN_TTL_HOURS", "8"))

    verifier = CredentialVerifier(secret_key=config.jwt_secret_key, algorithm=config.jwt_algorithm)
    token = verifier.issue(user_id=user_id, email=email, role=role, expires_delta=timedelta(hours=hours))
    print(token)

if __name__ == "__main__":
    main()
