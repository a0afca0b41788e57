"""
Performance-based question templates used by the offline synthesizer.

Templates are generic workflows and mappings, not exam content. The
troubleshooting methodology applies to both cores; the rest are
core-specific.
"""

from dataclasses import dataclass

from exam_service.core.data_models import AnswerType, CoreId

ORDER_EXPLANATION = (
    "This PBQ practices a common workflow relevant to the exam objectives. "
    "Review the steps and why the order matters."
)
MATCH_EXPLANATION = (
    "This PBQ covers common mappings. "
    "Review why each left item matches the right item."
)


@dataclass(frozen=True)
class OrderTemplate:
    template_id: str
    title: str
    prompt: str
    steps: tuple[str, ...]

    answer_type = AnswerType.PBQ_ORDER


@dataclass(frozen=True)
class MatchTemplate:
    template_id: str
    title: str
    prompt: str
    left_label: str
    right_label: str
    pairs: tuple[tuple[str, str], ...]

    answer_type = AnswerType.PBQ_MATCH


PbqTemplate = OrderTemplate | MatchTemplate


COMMON_TEMPLATES: tuple[PbqTemplate, ...] = (
    OrderTemplate(
        template_id="pbq-troubleshoot-order",
        title="Troubleshooting methodology",
        prompt="Put the standard troubleshooting steps in the correct order.",
        steps=(
            "Identify the problem",
            "Establish a theory of probable cause",
            "Test the theory to determine the cause",
            "Establish a plan of action and implement the solution",
            "Verify full system functionality and implement preventive measures",
            "Document findings, actions, and outcomes",
        ),
    ),
)

CORE_TEMPLATES: dict[CoreId, tuple[PbqTemplate, ...]] = {
    CoreId.CORE_1: (
        MatchTemplate(
            template_id="pbq-ports-match",
            title="Ports and protocols",
            prompt="Match each port number to the correct protocol/service.",
            left_label="Port",
            right_label="Service",
            pairs=(
                ("22", "SSH"),
                ("53", "DNS"),
                ("80", "HTTP"),
                ("443", "HTTPS"),
            ),
        ),
        MatchTemplate(
            template_id="pbq-wifi-match",
            title="Wi-Fi standards",
            prompt="Match each Wi-Fi generation to the correct standard label.",
            left_label="Generation",
            right_label="Standard",
            pairs=(
                ("Wi-Fi 5", "802.11ac"),
                ("Wi-Fi 6", "802.11ax"),
                ("Wi-Fi 4", "802.11n"),
                ("Wi-Fi 6E", "802.11ax (6 GHz)"),
            ),
        ),
        OrderTemplate(
            template_id="pbq-router-harden",
            title="Router hardening",
            prompt="Order the following router hardening actions from first to last.",
            steps=(
                "Change default admin credentials",
                "Update router firmware",
                "Disable WPS if not required",
                "Configure WPA2/WPA3 and set a strong passphrase",
                "Disable remote administration (unless required)",
                "Document settings and store backup config securely",
            ),
        ),
        MatchTemplate(
            template_id="pbq-cable-match",
            title="Cables and connectors",
            prompt="Match the connector to the cable type.",
            left_label="Connector",
            right_label="Cable",
            pairs=(
                ("RJ-45", "Ethernet (twisted pair)"),
                ("LC", "Fiber optic (SFP transceiver)"),
                ("BNC", "Coaxial"),
                ("USB-C", "USB"),
            ),
        ),
    ),
    CoreId.CORE_2: (
        MatchTemplate(
            template_id="pbq-windows-tools",
            title="Windows tools",
            prompt="Match each tool to the best use case.",
            left_label="Tool",
            right_label="Use case",
            pairs=(
                ("Task Manager", "View/stop processes and performance"),
                ("Event Viewer", "Review system/application logs"),
                ("Disk Management", "Create/format/assign volumes"),
                ("Device Manager", "Manage hardware devices/drivers"),
            ),
        ),
        OrderTemplate(
            template_id="pbq-malware-flow",
            title="Malware response workflow",
            prompt="Order the steps for responding to a malware incident.",
            steps=(
                "Identify and isolate the infected system",
                "Disable System Restore (if used in your procedure)",
                "Remediate/clean or reimage as required",
                "Update signatures and apply patches",
                "Re-enable protections and restore services",
                "Document incident and user education",
            ),
        ),
        MatchTemplate(
            template_id="pbq-ticket-triage",
            title="Help desk triage",
            prompt="Match each ticket description to the most appropriate priority.",
            left_label="Ticket",
            right_label="Priority",
            pairs=(
                ("Single user cannot print to local printer", "Low"),
                ("Multiple users cannot access shared drive", "High"),
                ("CEO laptop will not boot before a meeting", "Critical"),
                ("User requests software installation", "Medium"),
            ),
        ),
        OrderTemplate(
            template_id="pbq-change-mgmt",
            title="Change management",
            prompt="Order common change management steps in a controlled environment.",
            steps=(
                "Identify scope and risk",
                "Create a rollback plan",
                "Test in a staging environment",
                "Schedule and communicate downtime",
                "Implement the change",
                "Validate and document results",
            ),
        ),
    ),
}


def templates_for(
    core: CoreId, answer_type: AnswerType | None = None
) -> list[PbqTemplate]:
    """Common templates followed by the core-specific ones.

    Args:
        core: Exam core.
        answer_type: If given, keep only templates producing that PBQ type.

    Returns:
        Templates in a stable order.
    """
    templates = [*COMMON_TEMPLATES, *CORE_TEMPLATES.get(core, ())]
    if answer_type is None:
        return templates
    return [t for t in templates if t.answer_type == answer_type]
