import enum
import logging

from jcomm.disposable import DisposableDelegate
from jcomm.session import create_message


log = logging.getLogger(__name__)


class CommState (enum.Enum):
    OPEN = 'open'
    DISPOSED = 'disposed'



class Comm (object):
    '''
    Client side handle for a comm channel

    A comm exchanges arbitrary data with an object in the kernel, outside of the execute cycle, using
    comm_open, comm_msg and comm_close messages. Comms are created by a kernel connection (see
    KernelConnection.connect_to_comm); the connection routes incoming comm traffic to handle_msg and
    handle_close.

    Once disposed, open(), send() and close() do nothing and return None.
    '''
    def __init__(self, target_name, comm_id, kernel, dispose_cb=None):
        '''
        Comm constructor

        :param target_name: the name of the target that handles this comm in the kernel
        :param comm_id: unique comm id
        :param kernel: the kernel connection; not owned by the comm
        :param dispose_cb: function of the form f() invoked once when the comm is disposed
        '''
        self.__target_name = target_name
        self.__comm_id = comm_id
        self.__kernel = kernel
        self.__state = CommState.OPEN
        self.__disposable = DisposableDelegate(dispose_cb)

        self.__on_close = None
        self.__on_msg = None


    @property
    def comm_id(self):
        return self.__comm_id

    @property
    def target_name(self):
        return self.__target_name

    @property
    def state(self):
        return self.__state

    @property
    def is_disposed(self):
        return self.__state is CommState.DISPOSED


    @property
    def on_close(self):
        '''
        Callback of the form f(msg) invoked when the comm is closed, by either side
        '''
        return self.__on_close

    @on_close.setter
    def on_close(self, cb):
        self.__on_close = cb

    @property
    def on_msg(self):
        '''
        Callback of the form f(msg) invoked when a comm_msg for this comm arrives from the kernel
        '''
        return self.__on_msg

    @on_msg.setter
    def on_msg(self, cb):
        self.__on_msg = cb


    def _live_kernel(self, action):
        kernel = self.__kernel
        if self.is_disposed or kernel is None or kernel.is_disposed:
            log.debug('Comm %s: %s ignored; comm or kernel disposed', self.__comm_id, action)
            return None
        return kernel


    def _create_message(self, kernel, msg_type, channel, content, metadata=None, buffers=None):
        return create_message(msg_type, channel, kernel.username, kernel.client_id,
                              content=content, metadata=metadata, buffers=buffers)


    def open(self, data=None, metadata=None):
        '''
        Open the comm in the kernel by sending a comm_open message

        :param data: data to send with the open message; defaults to {}
        :param metadata: message metadata
        :return: the reply future, or None if the comm or kernel has been disposed
        '''
        kernel = self._live_kernel('open')
        if kernel is None:
            return None
        content = {
            'comm_id': self.__comm_id,
            'target_name': self.__target_name,
            'data': {} if data is None   else data
        }
        msg = self._create_message(kernel, 'comm_open', 'shell', content, metadata)
        return kernel.send_shell_message(msg, False, True)


    def send(self, data, metadata=None, buffers=None, dispose_on_done=True):
        '''
        Send a comm_msg message to the kernel

        :param data: the data to send
        :param metadata: message metadata
        :param buffers: list of binary buffers to attach
        :param dispose_on_done: if True, the returned future is disposed once its reply cycle completes
        :return: the reply future, or None if the comm or kernel has been disposed
        '''
        kernel = self._live_kernel('send')
        if kernel is None:
            return None
        content = {
            'comm_id': self.__comm_id,
            'data': data
        }
        msg = self._create_message(kernel, 'comm_msg', 'shell', content, metadata,
                                   buffers if buffers is not None   else [])
        return kernel.send_shell_message(msg, False, dispose_on_done)


    def close(self, data=None, metadata=None):
        '''
        Close the comm

        Sends a comm_close message to the kernel, invokes the on_close callback straight away with a
        locally built iopub comm_close message, then disposes the comm. on_close does not wait for the
        kernel to acknowledge the close.

        :param data: data to send with the close message; defaults to {}
        :param metadata: message metadata
        :return: the reply future of the comm_close message, or None if the comm or kernel has been disposed
        '''
        kernel = self._live_kernel('close')
        if kernel is None:
            return None
        content = {
            'comm_id': self.__comm_id,
            'data': {} if data is None   else data
        }
        msg = self._create_message(kernel, 'comm_close', 'shell', content, metadata)
        future = kernel.send_shell_message(msg, False, True)

        io_msg = self._create_message(kernel, 'comm_close', 'iopub', dict(content), metadata)
        on_close = self.__on_close
        try:
            if on_close is not None:
                on_close(io_msg)
        finally:
            self.dispose()
        return future


    def handle_msg(self, msg):
        '''
        Handle a comm_msg message that arrived from the kernel

        :param msg: the message
        '''
        if self.is_disposed:
            return
        on_msg = self.__on_msg
        if on_msg is not None:
            on_msg(msg)


    def handle_close(self, msg):
        '''
        Handle a comm_close message that arrived from the kernel; invokes on_close and disposes the comm
        without sending anything back

        :param msg: the message
        '''
        if self.is_disposed:
            return
        on_close = self.__on_close
        try:
            if on_close is not None:
                on_close(msg)
        finally:
            self.dispose()


    def dispose(self):
        '''
        Dispose of the comm; clears the callbacks and the kernel reference. Has no effect if already disposed.
        '''
        if self.is_disposed:
            return
        self.__on_close = None
        self.__on_msg = None
        self.__kernel = None
        self.__state = CommState.DISPOSED
        self.__disposable.dispose()


    def __repr__(self):
        return 'Comm({0!r}, {1!r}, state={2})'.format(self.__target_name, self.__comm_id, self.__state.value)
