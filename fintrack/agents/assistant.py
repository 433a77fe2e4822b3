"""
Financial Assistant

Text in, text out. The assistant reads the user's transaction ledger on its
own (it does not share the UI's cached LedgerState) and asks Gemini to answer
using that data only.

CRITICAL BOUNDARIES:
- CAN: summarise and explain the user's own transactions
- CANNOT: answer from general knowledge or invent figures
- MUST: say so plainly when there is no data

The LLM is a TRANSLATOR, not an ORACLE. Any failure on the way (scope,
store or model) degrades to a fixed apology text; the caller never sees an
exception.
"""

from collections import defaultdict
from decimal import Decimal
from typing import Optional

import google.generativeai as genai
import structlog

from fintrack.audit import AuditLogger
from fintrack.config import get_settings
from fintrack.ledger import aggregates
from fintrack.ledger.tenant import ScopeUnresolvedError, TenantResolver
from fintrack.models.ledger import Identity, Transaction
from fintrack.services.storage import RemoteLedgerStore


logger = structlog.get_logger(__name__)

APOLOGY = (
    "I'm having trouble connecting to my AI services right now. "
    "Please check that you're signed in and try again in a moment."
)
NO_ANSWER = "I apologize, but I couldn't process your request at the moment. Please try again."
NO_DATA = (
    "I don't have any transactions for your account yet. "
    "Add income or record a payment and ask me again."
)

# Most recent rows included verbatim in the prompt
RECENT_LIMIT = 25


class FinancialAssistant:
    """
    Answers questions about one user's own spending.

    Usage:
        assistant = FinancialAssistant(resolver, store)
        reply = await assistant.ask("What did I spend on food?", user_id)
    """

    def __init__(
        self,
        resolver: TenantResolver,
        store: RemoteLedgerStore,
        audit_logger: Optional[AuditLogger] = None,
        model=None,
    ):
        self._resolver = resolver
        self._store = store
        self._audit_logger = audit_logger
        self._model = model

    def _configure_genai(self):
        """Configure the Gemini client on first use."""
        settings = get_settings().gemini
        genai.configure(api_key=settings.api_key)
        self._model = genai.GenerativeModel(
            model_name=settings.model_name,
            generation_config={
                "temperature": settings.temperature,
                "max_output_tokens": settings.max_tokens,
            },
        )

    async def ask(self, question: str, user_id: str) -> str:
        question = (question or "").strip()
        if not question:
            return NO_ANSWER

        tenant_id = None
        transactions: list[Transaction] = []
        try:
            scope = await self._resolver.resolve(Identity(user_id=user_id))
            tenant_id = scope.tenant_id
            transactions = await self._store.list_transactions(scope)

            if not transactions:
                reply = NO_DATA
            else:
                if self._model is None:
                    self._configure_genai()
                response = await self._model.generate_content_async(
                    build_prompt(question, transactions)
                )
                reply = (response.text or "").strip() or NO_ANSWER
        except ScopeUnresolvedError as e:
            logger.warning("assistant_scope_unresolved", user_id=user_id, error=str(e))
            await self._audit(user_id, None, question, 0, answered=False)
            return APOLOGY
        except Exception as e:
            # Store or model failure; the user gets the apology
            logger.error("assistant_failed", user_id=user_id, error=str(e))
            if self._audit_logger:
                await self._audit_logger.log_error(
                    error_type="assistant",
                    error_message=str(e),
                    details={"user_id": user_id},
                )
            return APOLOGY

        await self._audit(user_id, tenant_id, question, len(transactions), answered=True)
        return reply

    async def _audit(
        self,
        user_id: str,
        tenant_id: Optional[str],
        question: str,
        used: int,
        answered: bool,
    ) -> None:
        if self._audit_logger:
            await self._audit_logger.log_assistant_queried(
                user_id, tenant_id, question, used, answered
            )


def spending_by_category(transactions: list[Transaction]) -> dict[str, Decimal]:
    """Debit totals per category, largest first."""
    totals: dict[str, Decimal] = defaultdict(Decimal)
    for txn in transactions:
        if txn.amount < 0:
            totals[txn.category] += -txn.amount
    return dict(sorted(totals.items(), key=lambda item: item[1], reverse=True))


def build_prompt(question: str, transactions: list[Transaction]) -> str:
    summary = aggregates.summarize([], transactions)
    categories = "\n".join(
        f"- {name}: ₹{amount:,.2f}"
        for name, amount in spending_by_category(transactions).items()
    ) or "- none"
    recent = "\n".join(
        f"{t.date.isoformat()} | {t.description} | {t.category} | {t.mode} | ₹{t.amount:,.2f}"
        for t in transactions[:RECENT_LIMIT]
    )

    return f"""You are FinPilot, a personal finance assistant. Answer using ONLY the data provided.

Question: "{question}"

Totals across {len(transactions)} transactions:
- Income: ₹{summary.total_income:,.2f}
- Spent: ₹{summary.total_spent:,.2f}
- Balance: ₹{summary.current_balance:,.2f}
- Savings rate: {summary.savings_percentage}%

Spending by category:
{categories}

Most recent transactions (date | description | category | mode | amount, negative = debit):
{recent}

- Format amounts in Indian Rupees (₹)
- Keep it concise
- If the data doesn't answer the question, say what you can and acknowledge the limitation.

IMPORTANT: Do NOT add any figures that are not in the data above."""
