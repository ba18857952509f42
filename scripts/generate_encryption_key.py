"""Print a fresh PHONE_ENCRYPTION_KEY (base64, 32 bytes) for the .env file."""

from order_notify.application.services.phone_cipher import generate_key


def main():
    key = generate_key()
    print("🔐 New phone encryption key")
    print("---------------------------")
    print(f"PHONE_ENCRYPTION_KEY={key}")
    print("\nStore it in a secret manager. Losing it makes stored phones unreadable.")


if __name__ == "__main__":
    main()
