"""
Workflow store: drafts being edited and saved workflow definitions.
"""

import logging
from typing import Dict, List, Optional, Union

from pydantic import ValidationError

from ..errors import InvalidState, NotFound
from ..models.workflow import Workflow, WorkflowStep, STEP_FIELDS
from .events import EventBus, WORKFLOW_SAVED, WORKFLOW_REMOVED
from .state import StateRepository


class WorkflowStore:
    """
    Saved workflows in listing order plus open drafts.

    `create` and `edit` open a draft; step operations mutate the draft and
    only `save` makes the change visible to `list` and to runs.
    """

    def __init__(self, events: Optional[EventBus] = None,
                 state: Optional[StateRepository] = None):
        self.logger = logging.getLogger(__name__)
        self.events = events or EventBus()
        self.state = state
        # dicts keep insertion order, which is the listing order
        self._saved: Dict[str, Workflow] = {}
        self._drafts: Dict[str, Workflow] = {}

        if self.state:
            for workflow in self.state.load_workflows():
                self._saved[workflow.id] = workflow
            self.logger.info(f"Loaded {len(self._saved)} workflows from {self.state.base_path}")

    def create(self, name: str = "New Workflow", description: str = "") -> Workflow:
        """Open a new, unsaved workflow with no steps."""
        try:
            workflow = Workflow(name=name, description=description)
        except ValidationError as e:
            raise InvalidState(f"Invalid workflow: {e.errors()[0]['msg']}",
                               details={"name": name}) from e
        self._drafts[workflow.id] = workflow
        return workflow.model_copy(deep=True)

    def edit(self, workflow_id: str) -> Workflow:
        """Open a draft copy of a saved workflow."""
        return self._draft(workflow_id).model_copy(deep=True)

    def discard(self, workflow_id: str) -> None:
        """Drop a draft without saving it."""
        if self._drafts.pop(workflow_id, None) is None:
            raise NotFound(f"No open draft for workflow {workflow_id}",
                           details={"workflow_id": workflow_id})

    def add_step(self, workflow_id: str, tool: str = "", command: str = "") -> WorkflowStep:
        """Append a step to the end of a workflow."""
        draft = self._draft(workflow_id)
        step = WorkflowStep(tool=tool, command=command)
        draft.steps.append(step)
        return step.model_copy()

    def remove_step(self, workflow_id: str, step_id: str) -> None:
        draft = self._draft(workflow_id)
        index = self._step_index(draft, step_id)
        del draft.steps[index]

    def update_step(self, workflow_id: str, step_id: str, field: str, value: str) -> WorkflowStep:
        """
        Set one field of a step.

        Raises:
            NotFound: If the workflow or step is unknown
            InvalidState: If the field is not 'tool' or 'command'
        """
        if field not in STEP_FIELDS:
            raise InvalidState(f"Step field '{field}' cannot be updated",
                               details={"allowed": list(STEP_FIELDS)})
        draft = self._draft(workflow_id)
        index = self._step_index(draft, step_id)
        updated = draft.steps[index].model_copy(update={field: value})
        draft.steps[index] = updated
        return updated.model_copy()

    def save(self, workflow: Union[Workflow, str]) -> Workflow:
        """
        Upsert a workflow by id.

        An existing workflow is replaced in place, keeping its position in
        the listing; a new one is appended. Accepts a Workflow or the id of
        an open draft. Closes the draft.
        """
        if isinstance(workflow, str):
            if workflow not in self._drafts:
                raise NotFound(f"No open draft for workflow {workflow}",
                               details={"workflow_id": workflow})
            workflow = self._drafts[workflow]

        # attribute assignment is not validated, so check again here
        try:
            snapshot = Workflow(**workflow.model_dump())
        except ValidationError as e:
            raise InvalidState(f"Invalid workflow: {e.errors()[0]['msg']}",
                               details={"workflow_id": workflow.id}) from e
        replaced = snapshot.id in self._saved
        self._saved[snapshot.id] = snapshot
        self._drafts.pop(snapshot.id, None)
        self._persist()

        self.logger.info(
            f"{'Updated' if replaced else 'Saved'} workflow '{snapshot.name}' "
            f"({snapshot.id}) with {len(snapshot.steps)} steps"
        )
        self.events.emit(WORKFLOW_SAVED, workflow_id=snapshot.id, replaced=replaced)
        return snapshot.model_copy(deep=True)

    def get(self, workflow_id: str) -> Workflow:
        if workflow_id not in self._saved:
            raise NotFound(f"Workflow not found: {workflow_id}", details={"workflow_id": workflow_id})
        return self._saved[workflow_id].model_copy(deep=True)

    def get_draft(self, workflow_id: str) -> Workflow:
        if workflow_id not in self._drafts:
            raise NotFound(f"No open draft for workflow {workflow_id}",
                           details={"workflow_id": workflow_id})
        return self._drafts[workflow_id].model_copy(deep=True)

    def remove(self, workflow_id: str) -> None:
        if workflow_id not in self._saved:
            raise NotFound(f"Workflow not found: {workflow_id}", details={"workflow_id": workflow_id})
        workflow = self._saved.pop(workflow_id)
        self._drafts.pop(workflow_id, None)
        self._persist()
        self.logger.info(f"Removed workflow '{workflow.name}' ({workflow_id})")
        self.events.emit(WORKFLOW_REMOVED, workflow_id=workflow_id)

    def list(self) -> List[Workflow]:
        return [w.model_copy(deep=True) for w in self._saved.values()]

    def _draft(self, workflow_id: str) -> Workflow:
        if workflow_id in self._drafts:
            return self._drafts[workflow_id]
        if workflow_id in self._saved:
            draft = self._saved[workflow_id].model_copy(deep=True)
            self._drafts[workflow_id] = draft
            return draft
        raise NotFound(f"Workflow not found: {workflow_id}", details={"workflow_id": workflow_id})

    def _step_index(self, workflow: Workflow, step_id: str) -> int:
        index = workflow.find_step(step_id)
        if index is None:
            raise NotFound(f"Step {step_id} not found in workflow {workflow.id}",
                           details={"workflow_id": workflow.id, "step_id": step_id})
        return index

    def _persist(self) -> None:
        if self.state:
            self.state.save_workflows(list(self._saved.values()))
