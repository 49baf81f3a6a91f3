"""
Request builders for work item mutations.

Builds JSON Patch documents for the work item API and the XML payloads that
Azure DevOps stores in the test case steps and parameters fields.
"""
import re
import xml.etree.ElementTree as ET
from typing import Any, Dict, List, Mapping, Optional

from bs4 import BeautifulSoup

from core.domain.errors import ValidationError
from core.domain.patch import PatchDocument, PatchOp, PatchOperation
from core.domain.test_case import ACTION_STEP, TestCase, TestStep

ASSIGN_TO_ME = "@me"

TITLE_FIELD = "System.Title"
DESCRIPTION_FIELD = "System.Description"
STEPS_FIELD = "Microsoft.VSTS.TCM.Steps"
PARAMETERS_FIELD = "Microsoft.VSTS.TCM.Parameters"
PRIORITY_FIELD = "Microsoft.VSTS.Common.Priority"
STATE_FIELD = "System.State"
AREA_PATH_FIELD = "System.AreaPath"
ITERATION_PATH_FIELD = "System.IterationPath"
TAGS_FIELD = "System.Tags"
ASSIGNED_TO_FIELD = "System.AssignedTo"

PARENT_RELATION = "System.LinkTypes.Hierarchy-Reverse"

PLACEHOLDER_STEPS_XML = (
    '<steps id="0" last="1"><step id="2" type="ActionStep">'
    '<parameterizedString isformatted="true">&lt;DIV&gt;&lt;P&gt;Step 1&lt;/P&gt;&lt;/DIV&gt;</parameterizedString>'
    '<parameterizedString isformatted="true">&lt;DIV&gt;&lt;P&gt;Expected Result&lt;/P&gt;&lt;/DIV&gt;</parameterizedString>'
    '<description/></step></steps>'
)

_BRACE_PARAM = re.compile(r"\{([A-Za-z0-9_]+)\}")
_AT_PARAM = re.compile(r"(?<![\w.])@([A-Za-z0-9_]+)")


def field_path(reference_name: str) -> str:
    return f"/fields/{reference_name}"


def escape_xml(text: Any) -> str:
    """Escape XML special characters."""
    return (str(text if text is not None else "")
            .replace('&', '&amp;')
            .replace('<', '&lt;')
            .replace('>', '&gt;')
            .replace('"', '&quot;')
            .replace("'", '&apos;'))


def build_steps_xml(steps: List[TestStep]) -> str:
    """Serialize steps into the ``Microsoft.VSTS.TCM.Steps`` format.

    Step ids start at 2 and ``last`` is the id of the final step. An empty
    list yields a single placeholder step so the field is never blank.
    """
    if not steps:
        return PLACEHOLDER_STEPS_XML

    xml_parts = [f'<steps id="0" last="{len(steps) + 1}">']
    for index, step in enumerate(steps):
        step_id = index + 2
        step_type = escape_xml(step.step_type or ACTION_STEP)
        action = escape_xml(step.action)
        expected = escape_xml(step.expected_result)

        xml_parts.append(f'<step id="{step_id}" type="{step_type}">')
        xml_parts.append(
            f'<parameterizedString isformatted="true">&lt;DIV&gt;&lt;P&gt;{action}&lt;/P&gt;&lt;/DIV&gt;</parameterizedString>'
        )
        xml_parts.append(
            f'<parameterizedString isformatted="true">&lt;DIV&gt;&lt;P&gt;{expected}&lt;/P&gt;&lt;/DIV&gt;</parameterizedString>'
        )
        if step.test_data:
            xml_parts.append(f'<description>&lt;P&gt;{escape_xml(step.test_data)}&lt;/P&gt;</description>')
        else:
            xml_parts.append('<description/>')
        xml_parts.append('</step>')
    xml_parts.append('</steps>')
    return ''.join(xml_parts)


def extract_parameter_names(steps: List[TestStep]) -> List[str]:
    """Collect ``{Name}`` and ``@Name`` tokens from step text, first-seen order."""
    names: List[str] = []
    for step in steps:
        for text in (step.action, step.expected_result, step.test_data):
            if not text:
                continue
            for pattern in (_BRACE_PARAM, _AT_PARAM):
                for name in pattern.findall(text):
                    if name not in names:
                        names.append(name)
    return names


def build_parameters_xml(names: List[str]) -> str:
    """Serialize parameter names into the ``Microsoft.VSTS.TCM.Parameters`` format."""
    xml_parts = ['<parameters>']
    for name in names:
        xml_parts.append(f'<param name="{escape_xml(name)}" />')
    xml_parts.append('</parameters>')
    return ''.join(xml_parts)


def html_to_text(html_content: str) -> str:
    """Convert the HTML stored in rich-text fields to plain text."""
    if not html_content:
        return ""
    soup = BeautifulSoup(html_content, 'html.parser')
    lines = [line.strip() for line in soup.get_text(separator='\n').split('\n') if line.strip()]
    return '\n'.join(lines)


def parse_steps_xml(steps_xml: Optional[str]) -> List[TestStep]:
    """Parse a ``Microsoft.VSTS.TCM.Steps`` value back into steps.

    Malformed XML yields an empty list rather than an error, since the field
    is user-editable in the web UI.
    """
    if not steps_xml:
        return []
    try:
        root = ET.fromstring(steps_xml)
    except ET.ParseError:
        return []

    steps = []
    for step_el in root.iter('step'):
        strings = step_el.findall('parameterizedString')
        action = html_to_text(strings[0].text or "") if len(strings) > 0 else ""
        expected = html_to_text(strings[1].text or "") if len(strings) > 1 else ""
        description = step_el.find('description')
        test_data = html_to_text(description.text or "") if description is not None else ""
        steps.append(TestStep(
            action=action,
            expected_result=expected,
            step_type=step_el.get('type') or ACTION_STEP,
            test_data=test_data,
        ))
    return steps


def build_create_test_case(
    test_case: TestCase,
    assigned_to: Optional[str] = None,
    parent_url: Optional[str] = None
) -> PatchDocument:
    """Build the JSON Patch document that creates a test case.

    Operation order: title, description, steps, parameters, optional fields,
    assignment, then the parent link.

    Args:
        test_case: Test case to create
        assigned_to: Explicit assignee; overrides ``test_case.assigned_to``.
            When neither is given the ``@me`` macro is sent and resolved
            upstream to the token's identity.
        parent_url: Work item URL of the parent story, if any

    Returns:
        PatchDocument of ``add`` operations
    """
    doc = PatchDocument()
    doc.append(PatchOperation(PatchOp.ADD, field_path(TITLE_FIELD), test_case.title))
    doc.append(PatchOperation(PatchOp.ADD, field_path(DESCRIPTION_FIELD), test_case.description or ""))
    doc.append(PatchOperation(PatchOp.ADD, field_path(STEPS_FIELD), build_steps_xml(test_case.steps)))

    parameters = extract_parameter_names(test_case.steps)
    if parameters:
        doc.append(PatchOperation(PatchOp.ADD, field_path(PARAMETERS_FIELD), build_parameters_xml(parameters)))

    optional_fields = (
        (PRIORITY_FIELD, test_case.priority),
        (STATE_FIELD, test_case.state),
        (AREA_PATH_FIELD, test_case.area_path),
        (ITERATION_PATH_FIELD, test_case.iteration_path),
        (TAGS_FIELD, test_case.tags),
    )
    for reference_name, value in optional_fields:
        if value not in (None, ""):
            doc.append(PatchOperation(PatchOp.ADD, field_path(reference_name), value))

    assignee = assigned_to or test_case.assigned_to or ASSIGN_TO_ME
    doc.append(PatchOperation(PatchOp.ADD, field_path(ASSIGNED_TO_FIELD), assignee))

    if parent_url:
        doc.append(build_add_relation(PARENT_RELATION, parent_url))
    return doc


def build_add_relation(rel: str, target_url: str, comment: Optional[str] = None) -> PatchOperation:
    value: Dict[str, Any] = {"rel": rel, "url": target_url}
    if comment:
        value["attributes"] = {"comment": comment}
    return PatchOperation(PatchOp.ADD, "/relations/-", value)


FIELD_ALIASES = {
    "title": TITLE_FIELD,
    "description": DESCRIPTION_FIELD,
    "priority": PRIORITY_FIELD,
    "state": STATE_FIELD,
    "areaPath": AREA_PATH_FIELD,
    "iterationPath": ITERATION_PATH_FIELD,
    "tags": TAGS_FIELD,
    "assignedTo": ASSIGNED_TO_FIELD,
}


def _work_item_path(name: str) -> str:
    if name.startswith("/"):
        return name
    return field_path(FIELD_ALIASES.get(name, name))


def _node_path(name: str) -> str:
    if name.startswith("/"):
        return name
    return "/" + name


def build_update_fields(fields: Mapping[str, Any]) -> PatchDocument:
    """Build a work item update: ``replace`` for values, ``remove`` for None.

    ``steps`` takes the same shapes as on creation (step objects or plain
    strings) and is serialized to XML, with the parameters field refreshed
    alongside it.

    Raises:
        ValidationError: If ``fields`` is empty or ``steps`` is malformed
    """
    if not fields:
        raise ValidationError("At least one field is required for an update")

    doc = PatchDocument()
    for name, value in fields.items():
        if name == "steps":
            steps = TestStep.parse_list(value)
            doc.append(PatchOperation(PatchOp.REPLACE, field_path(STEPS_FIELD), build_steps_xml(steps)))
            parameters = extract_parameter_names(steps)
            if parameters:
                doc.append(PatchOperation(
                    PatchOp.REPLACE, field_path(PARAMETERS_FIELD), build_parameters_xml(parameters)
                ))
        elif value is None:
            doc.append(PatchOperation(PatchOp.REMOVE, _work_item_path(name)))
        else:
            doc.append(PatchOperation(PatchOp.REPLACE, _work_item_path(name), value))
    return doc


def build_update_node(fields: Mapping[str, Any]) -> PatchDocument:
    """Build the patch describing a classification node update.

    Top-level keys map to ``/name`` and ``/attributes``; a nested
    ``attributes`` mapping is flattened to ``/attributes/<key>``. Values use
    ``add`` (upsert) and None becomes ``remove``.

    Raises:
        ValidationError: If ``fields`` is empty or ``name`` is blank
    """
    if not fields:
        raise ValidationError("At least one field is required to update a node")

    doc = PatchDocument()
    for name, value in fields.items():
        if name == "attributes" and isinstance(value, Mapping):
            for attr_name, attr_value in value.items():
                op = PatchOp.REMOVE if attr_value is None else PatchOp.ADD
                doc.append(PatchOperation(op, f"/attributes/{attr_name}", attr_value))
            continue
        if name == "name" and (value is None or not str(value).strip()):
            raise ValidationError("Node name cannot be blank")
        op = PatchOp.REMOVE if value is None else PatchOp.ADD
        doc.append(PatchOperation(op, _node_path(name), value))
    if not doc:
        raise ValidationError("At least one field is required to update a node")
    return doc


def node_body_from_patch(doc: PatchDocument) -> Dict[str, Any]:
    """Fold a node patch into the JSON body accepted by the classification node API.

    Removed attributes are sent as null, which the API interprets as clearing them.
    """
    body: Dict[str, Any] = {}
    for operation in doc:
        segments = [s for s in operation.path.split("/") if s]
        value = None if operation.op == PatchOp.REMOVE else operation.value
        target = body
        for segment in segments[:-1]:
            target = target.setdefault(segment, {})
        target[segments[-1]] = value
    return body
