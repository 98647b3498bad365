import yaml
import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from policy_review.core.db import engine
from policy_review.models import Base, Agreement, AgreementVersion, PolicyRule
from policy_review.enums import AgreementStatus, AgreementType
from policy_review.features.agreements.services import INCOMING_CHANGE_NOTE
from policy_review.features.contract_review.services import normalize_proposal_records, serialize_review_data
from policy_review.core.config import settings


logger = logging.getLogger(__name__)


async def create_tables():
    """apply the table models to the database"""

    async with engine.begin() as cnx:
        await cnx.run_sync(Base.metadata.create_all)


async def load_sample_data():
    """load default/sample data from YAML files into the database"""

    async with AsyncSession(engine) as db:

        query = select(PolicyRule).limit(1)
        result = await db.execute(query)
        if result.scalar_one_or_none():
            logger.info("found existing policy rules in the database - ignoring policy sample data")
        else:
            with open(settings.sample_data_policies_path) as f:
                policy_rules_data = yaml.safe_load(f)["policy_rules"]
                policy_rules = [PolicyRule(description=rule["description"], is_active=rule.get("is_active", True)) for rule in policy_rules_data]
                db.add_all(policy_rules)
                await db.commit()
                logger.info(f"seeded {len(policy_rules)} policy rules into the database from sample data")

        query = select(Agreement).limit(1)
        result = await db.execute(query)
        if result.scalar_one_or_none():
            logger.info("found existing agreements in the database - ignoring agreement sample data")
            return

        with open(settings.sample_data_agreements_path) as f:
            agreements_data = yaml.safe_load(f)["agreements"]
            for agreement_data in agreements_data:
                agreement = Agreement(type=AgreementType(agreement_data["type"]), counterparty=agreement_data["counterparty"], status=AgreementStatus.REVIEW, review_generation=0)
                db.add(agreement)
                await db.flush()
                db.add(AgreementVersion(agreement_id=agreement.id, version_number=1, content=agreement_data["content"].strip(), change_note=INCOMING_CHANGE_NOTE))
                if agreement_data.get("proposals"):
                    proposals = normalize_proposal_records(agreement.id, agreement_data["proposals"])
                    agreement.review_data = serialize_review_data(proposals)
            await db.commit()
            logger.info(f"seeded {len(agreements_data)} agreements into the database from sample data")
