"""
Dispatch facade over the inference endpoint.

Accepts a single tensor, a list of tensors or a mapping of name -> tensor,
sends them in one request and decodes the response mapping back into tensors.
"""

import json
import httpx
import logging
from typing import Any, Dict, List, Mapping, Sequence, Union

from .config import RUN_PATH
from .errors import MalformedInputError, TransportError
from .schemas import RunRequest
from .tensor import Tensor

logger = logging.getLogger(__name__)

TensorInputs = Union[Tensor, Sequence[Tensor], Mapping[str, Tensor]]


def normalize_inputs(inputs: TensorInputs) -> List[Tensor]:
    """
    Flatten the accepted input forms into an ordered list of tensors.

    Mapping keys become tensor names (on renamed copies, the caller's tensors
    are untouched). Any non-tensor element aborts the whole batch.
    """
    if isinstance(inputs, Tensor):
        return [inputs]

    if isinstance(inputs, Mapping):
        named = []
        for input_name, t in inputs.items():
            if not isinstance(t, Tensor):
                raise MalformedInputError(
                    f"Found non-tensor type in input map: {type(t).__name__}"
                )
            named.append(t.with_name(str(input_name)))
        return named

    if isinstance(inputs, (list, tuple)):
        for t in inputs:
            if not isinstance(t, Tensor):
                raise MalformedInputError(
                    f"Found non-tensor type in input list: {type(t).__name__}"
                )
        return list(inputs)

    raise MalformedInputError(
        f"Expected a tensor, a list of tensors or a map of tensors but found {type(inputs).__name__}"
    )


class ConstellationApi:
    """
    Inference client bound to a transport.

    `binding` is an httpx.AsyncClient whose base URL points at the inference
    runtime; timeouts and connection handling are configured on it.
    """

    def __init__(self, binding: httpx.AsyncClient, run_path: str = RUN_PATH):
        self.binding = binding
        self.run_path = run_path

    def build_request(self, model_id: str, inputs: TensorInputs) -> RunRequest:
        """Serialize inputs into the run request body (wide types as base64)."""
        tensors = normalize_inputs(inputs)
        return RunRequest(model=model_id, input=[t.to_json(True) for t in tensors])

    async def query(self, model_id: str, inputs: TensorInputs) -> Dict[str, Tensor]:
        """
        Run `model_id` on `inputs`.

        Returns:
            Mapping of output name -> Tensor, in response order

        Raises:
            MalformedInputError: non-tensor input, or a response that is not a
                JSON object of tensors
            TransportError: non-2xx response status
        """
        request = self.build_request(model_id, inputs)
        logger.info(f"Querying model {model_id} with {len(request.input)} input tensor(s)")

        res = await self.binding.post(
            self.run_path,
            content=request.model_dump_json(by_alias=True),
            headers={"content-type": "application/json"},
        )
        if not res.is_success:
            logger.error(f"Model {model_id} returned {res.status_code}")
            raise TransportError(res.status_code, res.text)

        try:
            output: Any = res.json()
        except json.JSONDecodeError as e:
            raise MalformedInputError(f"API returned a non-JSON body: {e}") from e
        if not isinstance(output, dict):
            raise MalformedInputError(
                f"Expected a map of output tensors but found {type(output).__name__}"
            )

        return {
            output_name: Tensor.from_json(t) for output_name, t in output.items()
        }
