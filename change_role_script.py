import asyncio
import sys
from datetime import datetime, timezone

from training_portal.auth.firebase_auth import firebase_auth
from training_portal.database.collections import COLLECTIONS
from training_portal.database.database_service import database_service

# Trainees, staff and resource persons get their role through registration
ASSIGNABLE_ROLES = ["admin"]


async def grant_role(email: str, new_role: str):
    """Give an existing Firebase Auth account a role and a users profile"""
    try:
        firebase_user = await firebase_auth.get_user_by_email(email)
        if not firebase_user:
            print(f"No Firebase Auth account for {email}")
            return False

        uid = firebase_user.uid
        success, profile, _ = await database_service.get_document(COLLECTIONS['users'], uid)
        old_role = profile.get("role") if success else None

        await firebase_auth.set_custom_claims(uid, {"role": new_role})

        now = datetime.now(timezone.utc)
        if success:
            ok, error = await database_service.update_document(
                COLLECTIONS['users'], uid, {"role": new_role, "status": "active"}
            )
        else:
            name = (firebase_user.display_name or "").split(" ", 1)
            ok, _, error = await database_service.create_document(
                COLLECTIONS['users'],
                {
                    "id": uid,
                    "email": email.lower(),
                    "first_name": name[0] if name[0] else None,
                    "last_name": name[1] if len(name) > 1 else None,
                    "role": new_role,
                    "status": "active",
                    "created_at": now,
                },
                document_id=uid
            )

        if not ok:
            print(f"Failed to update users profile: {error}")
            return False

        print(f"✅ {email} now has role {new_role}")
        print(f"🔄 Old role: {old_role or 'none'} → New role: {new_role}")
        return True

    except Exception as e:
        print(f"Error changing role: {str(e)}")
        return False


async def list_admins():
    success, users, error = await database_service.query_documents(
        COLLECTIONS['users'], [("role", "==", "admin")]
    )
    if not success:
        print(f"Failed to get users: {error}")
        return

    print("\n📋 Admins:")
    print("-" * 60)
    for user in users:
        print(f"UID: {user.get('id')}")
        print(f"Email: {user.get('email', 'N/A')}")
        print(f"Status: {user.get('status', 'N/A')}")
        print("-" * 60)


async def main():
    if len(sys.argv) < 2:
        print("Usage:")
        print("  python change_role_script.py list                 # List admins")
        print("  python change_role_script.py <email> admin        # Grant admin")
        print("")
        print("Create the account in the Firebase console first, then grant the role.")
        return

    if sys.argv[1] == "list":
        await list_admins()
        return

    if len(sys.argv) < 3:
        print("Error: Please provide both email and role")
        return

    email = sys.argv[1]
    new_role = sys.argv[2].lower()
    if new_role not in ASSIGNABLE_ROLES:
        print(f"Error: Invalid role '{new_role}'. Valid roles are: {', '.join(ASSIGNABLE_ROLES)}")
        return

    if await grant_role(email, new_role):
        print("\n💡 The user must sign in again to pick up the new claims.")


if __name__ == "__main__":
    asyncio.run(main())
