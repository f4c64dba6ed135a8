"""
Basic CommunityOps Engine Usage Example

This example walks through a typical administrator session:
- Initializing the engine
- Creating a community, a residence and a household
- Approving a vehicle sticker through a remote procedure
- Handling an illegal transition
- Bulk importing residences from CSV
- Reading the audit trail

Prerequisites:
    Install from source:
    pip install -e .

    Set COMMUNITYOPS_REMOTE_BASE_URL and COMMUNITYOPS_REMOTE_API_KEY to call
    real remote procedures; otherwise a local stand-in client is used.

Run with: python basic-usage.py
"""

import asyncio
import os
from typing import Any

from communityops.domain.interfaces.remote_procedure import RemoteProcedureClient
from communityops.domain.models.actor import Actor, AdminRole
from communityops.domain.models.invocation import InvocationResponse
from communityops.domain.models.system_error import EngineError, describe_error
from communityops.engine import CommunityOpsEngine


class LocalProcedureClient(RemoteProcedureClient):
    """Stand-in for the hosted procedures: accepts every call."""

    async def call(self, procedure_id: str, payload: dict[str, Any]) -> InvocationResponse:
        return InvocationResponse(success=True, message=f"{procedure_id} accepted", data=payload)


async def main():
    """Main example function demonstrating basic engine usage."""

    print("=" * 80)
    print("CommunityOps Engine Basic Usage Example")
    print("=" * 80)
    print()

    # ============================================================================
    # Step 1: Initialize the engine
    # ============================================================================

    print("Step 1: Initializing engine...")
    remote_client = None if os.getenv("COMMUNITYOPS_REMOTE_BASE_URL") else LocalProcedureClient()
    engine = CommunityOpsEngine(remote_client=remote_client, config={"json_logs": False})
    platform_admin = Actor(id="platform-admin", role=AdminRole.SuperAdmin)
    print("✓ Engine initialized")
    print()

    async with engine:
        # ========================================================================
        # Step 2: Create a community and its records
        # ========================================================================

        print("Step 2: Creating community, residence and household...")
        community = (
            await engine.create(
                "community",
                {"name": "Green Valley Estates", "location": "Quezon City"},
                platform_admin,
            )
        ).entity
        admin = Actor(id="head-admin-1", role=AdminRole.AdminHead, tenant_id=community.id)

        residence = (
            await engine.create(
                "residence",
                {"unit_number": "A-101", "type": "townhouse", "max_occupancy": 6, "floor_area": 140},
                admin,
            )
        ).entity
        household = (
            await engine.create(
                "household",
                {"residence_id": residence.id, "move_in_date": "2024-06-01"},
                admin,
            )
        ).entity
        print(f"✓ Community {community.name} ({community.status.value})")
        print(f"✓ Residence {residence.unit_number}, household {household.id}")
        print()

        # ========================================================================
        # Step 3: Request and approve a vehicle sticker
        # ========================================================================

        print("Step 3: Approving a vehicle sticker...")
        sticker = (
            await engine.create(
                "vehicle_sticker",
                {"household_id": household.id, "vehicle_plate": "nda 4521", "vehicle_make": "Toyota"},
                admin,
            )
        ).entity
        print(f"  Requested sticker for plate {sticker.vehicle_plate}")
        print(f"  Allowed actions: {await engine.allowed_actions('vehicle_sticker', sticker.id, admin)}")

        try:
            result = await engine.transition(
                "vehicle_sticker",
                sticker.id,
                "approve",
                {"expiry_date": "2025-12-31"},
                admin,
                expected_status="requested",
            )
            print(f"✓ Sticker {result.prior_status} -> {result.new_status}")
            print(f"  RFID payload: {result.entity.rfid_code}")
        except EngineError as e:
            info = describe_error(e)
            print(f"✗ {info.label}: {info.message}")
            print(f"  {info.hint}")
        print()

        # ========================================================================
        # Step 4: Illegal transitions are rejected
        # ========================================================================

        print("Step 4: Trying to reject the approved sticker...")
        try:
            await engine.transition(
                "vehicle_sticker", sticker.id, "reject", {"rejection_reason": "Duplicate request"}, admin
            )
        except EngineError as e:
            print(f"✗ {e.category.value}: {e.message}")
        print()

        # ========================================================================
        # Step 5: Bulk import residences
        # ========================================================================

        print("Step 5: Importing residences from CSV...")
        csv_text = engine.csv_template("residence") + "A-101,townhouse,4,,120\n"
        batch = await engine.import_csv("residence", csv_text, community.id, admin)
        print(f"  Rows: {batch.total_rows}, imported: {batch.success_count}, failed: {batch.failure_count}")
        for error in batch.errors:
            print(f"    - Row {error.row_index}: {error.message}")
        print()

        # ========================================================================
        # Step 6: Read the audit trail
        # ========================================================================

        print("Step 6: Recent audit entries...")
        for entry in await engine.audit_recent(limit=5, tenant_id=community.id):
            print(f"  #{entry.sequence} {entry.action_type}: {entry.prior_status} -> {entry.new_status}")
        print()

    print("=" * 80)
    print("Example completed!")
    print("=" * 80)


if __name__ == "__main__":
    asyncio.run(main())
