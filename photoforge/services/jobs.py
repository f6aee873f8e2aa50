"""
Job Dispatcher - Generation and training submissions to the provider.

Credits are debited and committed together with the job record before the
provider is called. Any failure after that commit is compensated
synchronously: the exact record created in the same call is failed
(generation) or deleted (training) and the debit refunded.
"""

from uuid import UUID, uuid4

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from structlog import get_logger

from photoforge.config import settings
from photoforge.db.models import Generation, TrainedModel, utc_now
from photoforge.exceptions import (
    ExternalProviderError,
    InsufficientCreditsError,
    ModelNotFoundError,
    ModelNotReadyError,
    ModelOwnershipError,
    OwnershipError,
    ResourceNotFoundError,
)
from photoforge.models.api import GenerationStatus, ModelStatus, TransactionType
from photoforge.models.domain import (
    GenerationIntent,
    GenerationSubmission,
    TrainingIntent,
    TrainingSubmission,
)
from photoforge.observability.metrics import metrics
from photoforge.services.callbacks import CallbackUrlBuilder
from photoforge.services.generation_provider import (
    GenerationProvider,
    PromptDispatch,
    TuneDispatch,
)
from photoforge.services.ledger import CreditLedger
from photoforge.services.pricing import TRAINING_COST, generation_cost, provider_image_count
from photoforge.services.prompt_enhancer import PromptEnhancer

logger = get_logger(__name__)

DEMO_MODEL_NAME = "Demo"


class JobDispatcher:
    """Starts provider jobs and keeps the ledger consistent around them."""

    def __init__(
        self,
        session: AsyncSession,
        provider: GenerationProvider,
        enhancer: PromptEnhancer,
        callbacks: CallbackUrlBuilder,
    ) -> None:
        self.session = session
        self.provider = provider
        self.enhancer = enhancer
        self.callbacks = callbacks
        self.ledger = CreditLedger(session)

    # ========================================================================
    # Generation
    # ========================================================================

    async def submit_generation(
        self, user_id: UUID, intent: GenerationIntent
    ) -> GenerationSubmission:
        """
        Accept a generation request and dispatch it to the provider.

        Raises:
            ModelNotFoundError: model reference doesn't resolve
            ModelOwnershipError: model belongs to another user
            ModelNotReadyError: model is still training or failed
            InsufficientCreditsError: balance below cost (nothing is written)
            ExternalProviderError: dispatch failed (already refunded)

        Any other failure after the debit commit is refunded the same way and
        re-raised.
        """
        tune_id, model_name, prompt_prefix = await self._resolve_model(user_id, intent)

        cost = generation_cost(intent.num_images)
        generation_id = uuid4()

        try:
            entry = await self.ledger.debit(
                user_id,
                cost,
                TransactionType.GENERATION_CHARGE,
                f"Generation of {intent.num_images} image(s)",
                reference_id=generation_id,
            )
        except InsufficientCreditsError:
            metrics.generations_submitted_total.labels(outcome="insufficient_credits").inc()
            raise

        # Debit and placeholder are committed together
        generation = Generation(
            id=generation_id,
            user_id=user_id,
            prompt=intent.prompt,
            original_prompt=intent.prompt,
            image_url=settings.placeholder_image_url,
            status=GenerationStatus.PROCESSING,
            aspect_ratio=intent.aspect_ratio,
            model_ref=intent.model_ref,
            model_name=model_name,
            created_at=utc_now(),
        )
        self.session.add(generation)
        await self.session.commit()

        try:
            enhanced_prompt = await self.enhancer.enhance(intent.prompt)
            generation.prompt = enhanced_prompt

            dispatch = PromptDispatch(
                tune_id=tune_id,
                text=f"{prompt_prefix}{enhanced_prompt}",
                num_images=provider_image_count(intent.num_images),
                aspect_ratio=intent.aspect_ratio,
                callback_url=self.callbacks.generation_url(
                    user_id, intent.model_ref, generation_id
                ),
                super_resolution=intent.super_resolution,
                film_grain=intent.film_grain,
                inpaint_faces=intent.inpaint_faces,
                style_image_url=intent.style_image_url,
            )
            provider_prompt_id = await self.provider.create_prompt(dispatch)

            generation.provider_prompt_id = provider_prompt_id
            await self.session.commit()
        except Exception as e:
            await self.session.rollback()
            generation.status = GenerationStatus.FAILED
            generation.completed_at = utc_now()
            await self.ledger.refund(
                user_id, cost, "Refund for failed generation dispatch", reference_id=generation_id
            )
            await self.session.commit()

            outcome = "provider_error" if isinstance(e, ExternalProviderError) else "error"
            metrics.generations_submitted_total.labels(outcome=outcome).inc()
            logger.error(
                "generation_dispatch_failed",
                user_id=str(user_id),
                generation_id=str(generation_id),
                refunded=cost,
                error=str(e),
                error_type=type(e).__name__,
            )
            raise

        metrics.generations_submitted_total.labels(outcome="accepted").inc()
        logger.info(
            "generation_submitted",
            user_id=str(user_id),
            generation_id=str(generation_id),
            provider_prompt_id=provider_prompt_id,
            model_ref=intent.model_ref,
            requested_images=intent.num_images,
            cost=cost,
        )
        return GenerationSubmission(generation=generation, credits_remaining=entry.balance_after)

    async def _resolve_model(
        self, user_id: UUID, intent: GenerationIntent
    ) -> tuple[str, str, str]:
        """Provider tune id, display name and prompt prefix for a model reference."""
        if intent.uses_demo_model:
            return settings.demo_tune_id, DEMO_MODEL_NAME, ""

        try:
            model_id = UUID(intent.model_ref)
        except ValueError:
            logger.info(
                "generation_model_not_found", user_id=str(user_id), model_ref=intent.model_ref
            )
            raise ModelNotFoundError(intent.model_ref) from None

        model = await self._find_model(model_id)
        if model is None:
            logger.info("generation_model_not_found", user_id=str(user_id), model_ref=str(model_id))
            raise ModelNotFoundError(model_id)

        if model.user_id != user_id:
            logger.warning(
                "generation_model_forbidden",
                user_id=str(user_id),
                model_id=str(model_id),
                owner_id=str(model.user_id),
            )
            raise ModelOwnershipError(model_id, user_id)

        if not model.is_usable:
            raise ModelNotReadyError(model_id, model.status.value)

        prefix = f"{settings.model_trigger_token} {model.subject_class.value}, "
        return str(model.provider_tune_id), model.name, prefix

    # ========================================================================
    # Training
    # ========================================================================

    async def submit_training(self, user_id: UUID, intent: TrainingIntent) -> TrainingSubmission:
        """
        Accept a training request and dispatch it to the provider.

        Raises:
            InsufficientCreditsError: balance below the training cost
            ExternalProviderError: dispatch failed (model removed, cost refunded)
        """
        model_id = uuid4()

        try:
            entry = await self.ledger.debit(
                user_id,
                TRAINING_COST,
                TransactionType.TRAINING_CHARGE,
                f"Training of model {intent.name}",
                reference_id=model_id,
            )
        except InsufficientCreditsError:
            metrics.trainings_submitted_total.labels(outcome="insufficient_credits").inc()
            raise

        # Debit and model row are committed together
        model = TrainedModel(
            id=model_id,
            user_id=user_id,
            name=intent.name,
            subject_class=intent.subject_class,
            training_images=list(intent.image_urls),
            thumbnail_url=intent.image_urls[0],
            status=ModelStatus.PROCESSING,
            created_at=utc_now(),
        )
        self.session.add(model)
        await self.session.commit()

        dispatch = TuneDispatch(
            title=intent.name,
            subject_class=intent.subject_class.value,
            token=settings.model_trigger_token,
            base_tune_id=settings.base_tune_id,
            image_urls=intent.image_urls,
            callback_url=self.callbacks.training_url(model_id),
        )

        try:
            provider_tune_id = await self.provider.create_tune(dispatch)
            model.provider_tune_id = provider_tune_id
            await self.session.commit()
        except Exception as e:
            await self.session.rollback()
            await self.session.delete(model)
            await self.ledger.refund(
                user_id,
                TRAINING_COST,
                "Refund for failed training dispatch",
                reference_id=model_id,
            )
            await self.session.commit()

            outcome = "provider_error" if isinstance(e, ExternalProviderError) else "error"
            metrics.trainings_submitted_total.labels(outcome=outcome).inc()
            logger.error(
                "training_dispatch_failed",
                user_id=str(user_id),
                model_id=str(model_id),
                refunded=TRAINING_COST,
                error=str(e),
                error_type=type(e).__name__,
            )
            raise

        metrics.trainings_submitted_total.labels(outcome="accepted").inc()
        logger.info(
            "training_submitted",
            user_id=str(user_id),
            model_id=str(model_id),
            provider_tune_id=provider_tune_id,
            images=len(intent.image_urls),
        )
        return TrainingSubmission(model=model, credits_remaining=entry.balance_after)

    # ========================================================================
    # Listing / Deletion
    # ========================================================================

    async def list_generations(self, user_id: UUID, limit: int | None = None) -> list[Generation]:
        """Newest first."""
        stmt = (
            select(Generation)
            .where(Generation.user_id == user_id)
            .order_by(Generation.created_at.desc())
            .limit(limit or settings.list_limit)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def delete_generation(self, user_id: UUID, generation_id: UUID) -> None:
        """
        Raises:
            ResourceNotFoundError: unknown generation
            OwnershipError: generation belongs to another user
        """
        generation = await self.session.get(Generation, generation_id)
        if generation is None:
            logger.info(
                "generation_delete_not_found",
                user_id=str(user_id),
                generation_id=str(generation_id),
            )
            raise ResourceNotFoundError("Generation", generation_id)

        if generation.user_id != user_id:
            logger.warning(
                "generation_delete_forbidden",
                user_id=str(user_id),
                generation_id=str(generation_id),
                owner_id=str(generation.user_id),
            )
            raise OwnershipError("Generation", generation_id, user_id)

        await self.session.delete(generation)
        await self.session.commit()
        logger.info("generation_deleted", user_id=str(user_id), generation_id=str(generation_id))

    async def list_models(self, user_id: UUID) -> list[TrainedModel]:
        """Newest first."""
        stmt = (
            select(TrainedModel)
            .where(TrainedModel.user_id == user_id)
            .order_by(TrainedModel.created_at.desc())
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def delete_model(self, user_id: UUID, model_id: UUID) -> None:
        """
        Raises:
            ModelNotFoundError: unknown model
            ModelOwnershipError: model belongs to another user
        """
        model = await self._find_model(model_id)
        if model is None:
            logger.info("model_delete_not_found", user_id=str(user_id), model_id=str(model_id))
            raise ModelNotFoundError(model_id)

        if model.user_id != user_id:
            logger.warning(
                "model_delete_forbidden",
                user_id=str(user_id),
                model_id=str(model_id),
                owner_id=str(model.user_id),
            )
            raise ModelOwnershipError(model_id, user_id)

        await self.session.delete(model)
        await self.session.commit()
        logger.info("model_deleted", user_id=str(user_id), model_id=str(model_id))

    async def _find_model(self, model_id: UUID) -> TrainedModel | None:
        return await self.session.get(TrainedModel, model_id)
