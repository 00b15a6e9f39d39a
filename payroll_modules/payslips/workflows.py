"""Payslip Workflows.

State machine for the payslip lifecycle.
"""

from payroll_kernel.domain.workflow import Guard, Transition, Workflow
from payroll_kernel.logging_config import get_logger

logger = get_logger("modules.payslips.workflows")


# -----------------------------------------------------------------------------
# Guards
# -----------------------------------------------------------------------------

NET_PAY_NON_NEGATIVE = Guard(
    name="net_pay_non_negative",
    description="Computed net pay is zero or more",
)

REVIEWED_BEFORE_PAYMENT = Guard(
    name="reviewed_before_payment",
    description="Payslip was approved before it is marked paid",
)


# -----------------------------------------------------------------------------
# Payslip Workflow
# -----------------------------------------------------------------------------

PAYSLIP_WORKFLOW = Workflow(
    name="payslip",
    description="Payslip lifecycle: draft -> approved -> paid",
    initial_state="draft",
    states=("draft", "approved", "paid"),
    transitions=(
        Transition("draft", "approved", action="approve", guard=NET_PAY_NON_NEGATIVE),
        Transition("approved", "paid", action="pay", guard=REVIEWED_BEFORE_PAYMENT),
        Transition("approved", "draft", action="reopen"),
    ),
    terminal_states=("paid",),
)

logger.info(
    "payslip_workflow_defined",
    extra={
        "workflow": PAYSLIP_WORKFLOW.name,
        "states": list(PAYSLIP_WORKFLOW.states),
        "transitions": [
            f"{t.from_state}->{t.to_state}" for t in PAYSLIP_WORKFLOW.transitions
        ],
    },
)
